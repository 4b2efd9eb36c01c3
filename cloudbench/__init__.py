"""
cloudbench - periodic host benchmark harness

Contains:
- cli.py: argument parsing and wiring
- scheduler.py: fixed-interval run loop with a run limit
- pipeline.py: ordered probe execution for one run
- probes.py: CDN, network, CPU and disk probes
- parsers.py: curl / speedtest-cli / fio / ioping output parsing
- process.py: external tool runner
- schema.py / sink.py: CSV columns, run records, atomic file rewrites
"""

__version__ = "1.0.0"
