#!/usr/bin/env python3
"""
VBR Scale-Out Backup Size Report

Same report as backup_size.py, for scale-out backup repositories: only
restore points stored on a scale-out repository are considered, then they
are totalled per workload for each requested scale-out repository.

Usage:
    export VBR_PASSWORD="..."
    python sobr_backup_size.py --server vbr01 --username admin -r SOBR-01
    python sobr_backup_size.py --server vbr01 --username admin -r SOBR-01,SOBR-02 --csv
"""
import sys
from typing import List, Optional

from backup_size import build_parser, collect, emit_report, prepare_args
from lib.aggregate import aggregate_scale_out
from lib.constants import REPOSITORY_KIND_SCALE_OUT


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser(
        'VBR Scale-Out Backup Size Report - stored size per workload for scale-out repositories',
        epilog="""
Examples:
    export VBR_PASSWORD="..."
    python sobr_backup_size.py --server vbr01 --username admin -r SOBR-01
    python sobr_backup_size.py --input inventory.json -r SOBR-01 --csv
"""
    )
    args = prepare_args(parser, argv)

    collected = collect(parser, args, REPOSITORY_KIND_SCALE_OUT)
    if collected is None:
        return 1
    index, targets, restore_points = collected

    results = aggregate_scale_out(restore_points, index, names=[repo.name for repo in targets])

    # Report in the order the repositories were requested
    for repository in targets:
        emit_report(repository, results.get(repository, {}), args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
