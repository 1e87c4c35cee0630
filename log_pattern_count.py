#!/usr/bin/env python3
"""
Log Pattern Counter

Counts lines matching a fixed set of regular expressions in every log file
selected by a glob, and emits a JSON array with one record per file.

Usage:
    python log_pattern_count.py --path "/var/log/veeam/**/*.log"
    python log_pattern_count.py --path "logs/*.log" --pattern "denied" --pattern "retry" --output counts.json
"""
import argparse
import glob
import json
import logging
import os
import re
import sys
from typing import Dict, List, Optional, Pattern

from lib.constants import DEFAULT_LOG_PATTERNS
from lib.utils import setup_logging, write_json

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = list(DEFAULT_LOG_PATTERNS)


def compile_patterns(patterns: List[str]) -> Dict[str, Pattern]:
    """Compile case-insensitive patterns keyed by their source text. Raises re.error."""
    return {p: re.compile(p, re.IGNORECASE) for p in patterns}


def count_patterns(path: str, patterns: Dict[str, Pattern]) -> Dict[str, int]:
    """
    Matching line count per pattern for one file.

    A line counts once per pattern no matter how many times it matches.
    Undecodable bytes are replaced rather than failing the file.
    """
    counts = {source: 0 for source in patterns}
    with open(path, encoding='utf-8', errors='replace') as f:
        for line in f:
            for source, regex in patterns.items():
                if regex.search(line):
                    counts[source] += 1
    return counts


def count_log_patterns(glob_path: str, patterns: Optional[List[str]] = None) -> List[Dict]:
    """
    Per-file pattern counts for every file matched by glob_path.

    Returns:
        [{"file": path, "counts": {pattern: n}, "total": n}, ...] sorted by path
    """
    compiled = compile_patterns(patterns or DEFAULT_PATTERNS)
    files = sorted(p for p in glob.glob(glob_path, recursive=True) if os.path.isfile(p))

    results = []
    for path in files:
        try:
            counts = count_patterns(path, compiled)
        except OSError as e:
            # Unreadable or vanished since the glob
            logger.debug(f"Skipping {path}: {e}")
            continue
        results.append({
            'file': path,
            'counts': counts,
            'total': sum(counts.values()),
        })
        logger.debug(f"{path}: {sum(counts.values())} matches")

    logger.info(f"Scanned {len(results)} files matching {glob_path}")
    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Log Pattern Counter - per-file match counts as JSON',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Default patterns:\n    " + "\n    ".join(DEFAULT_PATTERNS),
    )
    parser.add_argument('--path', required=True, help='Glob selecting log files (** allowed)')
    parser.add_argument('--pattern', action='append',
                        help='Regular expression to count (repeatable, replaces the defaults)')
    parser.add_argument('--output', metavar='FILE', help='Write JSON to FILE instead of stdout')
    parser.add_argument('--log-level', default='INFO', help='Logging level')

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        results = count_log_patterns(args.path, args.pattern)
    except re.error as e:
        parser.error(f"invalid pattern: {e}")

    if args.output:
        write_json(results, args.output)
        print(f"Wrote {args.output}")
    else:
        print(json.dumps(results, indent=2))

    return 0


if __name__ == '__main__':
    sys.exit(main())
