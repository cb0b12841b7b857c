"""
Secret Santa draw: participant loading, the assignment algorithm and email
notifications. The command-line entry point lives in main.py.
"""
