#!/usr/bin/env python
"""於 backend 目錄執行：python run_tests.py [pytest 參數]，例：python run_tests.py -k settlement"""
import sys
import subprocess

if __name__ == "__main__":
    args = sys.argv[1:] or ["-v", "--tb=short"]
    sys.exit(subprocess.call([sys.executable, "-m", "pytest", "tests/", *args]))
