#!/usr/bin/env python3
"""
OSS object storage client

Run this script to work with buckets and objects on an OSS-compatible
service using the profiles in oss.json or OSS_PROFILE_* variables.

Usage:
    python run.py ls                           # List buckets
    python run.py ls my-bucket --prefix logs/  # List objects
    python run.py put my-bucket a.txt a.txt    # Upload a file
    python run.py get my-bucket a.txt out.txt  # Download an object
    python run.py sign my-bucket a.txt         # Print a pre-signed URL
    python run.py -p hz -j out.json head my-bucket a.txt
"""

import sys
from ossclient.cli import main

if __name__ == "__main__":
    sys.exit(main())
