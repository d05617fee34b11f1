"""
Runs the Plump backend.

    python main.py                 start the Socket.IO server
    python main.py simulate [seed] play one game locally with random legal moves
"""
import sys

from plump_backend.app import run
from plump_backend.simulation import print_simulation

if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "simulate":
        print_simulation(int(sys.argv[2]) if len(sys.argv) > 2 else None)
    else:
        run()
