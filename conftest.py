collect_ignore = [
    # run by worker processes in tests/test_cmdline.py, not by pytest
    "tests/sample_suite.py",
]
