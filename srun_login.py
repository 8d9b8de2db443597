"""
SRun Login Agent
================
Logs in to an SRun campus network portal and keeps the session alive:
checks whether this machine is authenticated, logs in when it is not,
and then probes liveness / sends keep-alives on fixed intervals.

Usage:
    python srun_login.py -u <account> --encoder mypkg.srun:encode -c 30 --keep-alive 60
"""

from srun_core.runner import main


if __name__ == "__main__":
    main()
