"""Management CLI for snapshot operations.

Usage:
    python -m gestock.cli export  <tenant> <branch|-> [file]    # Write a snapshot (stdout if no file)
    python -m gestock.cli import  <tenant> <branch|-> <file> [--merge]
    python -m gestock.cli backup  <tenant> <branch|->
    python -m gestock.cli restore <tenant> <branch|->
"""

import asyncio
import sys
from pathlib import Path

from gestock.database import engine
from gestock.middleware.exceptions import GeStockException
from gestock.scope import Scope, validate_scope_id
from gestock.services.transfer import import_snapshot
from gestock.snapshots.backup import BackupStore
from gestock.snapshots.builder import build_snapshot
from gestock.store.sql import SqlScopeStore

USAGE = "Usage: python -m gestock.cli [export|import|backup|restore] <tenant> <branch|-> ..."


def parse_scope(tenant: str, branch: str) -> Scope:
    return Scope(validate_scope_id(tenant), None if branch == "-" else validate_scope_id(branch))


async def export_scope(scope: Scope, path: str | None) -> int:
    document = await build_snapshot(SqlScopeStore(), scope)
    if path:
        Path(path).write_text(document.to_json(), encoding="utf-8")
        counts = document.tables.counts()
        print(f"  Exported {sum(counts.values())} rows to {path}")
    else:
        print(document.to_json())
    return 0


async def import_file(scope: Scope, path: str, replace: bool) -> int:
    raw = Path(path).read_text(encoding="utf-8")
    report = await import_snapshot(SqlScopeStore(), raw, scope, replace=replace)
    for table, count in report.written.items():
        if count:
            print(f"  {table}: {count}")
    if report.diagnostics:
        print(f"\n{report.status.value}:\n{report.report}")
        return 1
    print("  OK")
    return 0


async def backup_scope(scope: Scope) -> int:
    result = await BackupStore(SqlScopeStore()).save(scope)
    print(f"  {result.message}")
    return 0 if result.ok else 1


async def restore_scope(scope: Scope) -> int:
    result = await BackupStore(SqlScopeStore()).restore(scope)
    print(f"  {result.message}")
    return 0 if result.ok else 1


async def run(argv: list[str]) -> int:
    if len(argv) < 3:
        print(USAGE)
        return 2

    cmd, scope = argv[0], parse_scope(argv[1], argv[2])
    rest = argv[3:]
    try:
        if cmd == "export":
            return await export_scope(scope, rest[0] if rest else None)
        if cmd == "import" and rest:
            return await import_file(scope, rest[0], replace="--merge" not in rest)
        if cmd == "backup":
            return await backup_scope(scope)
        if cmd == "restore":
            return await restore_scope(scope)
    except GeStockException as exc:
        print(f"  FAILED: {exc.message}")
        return 1
    finally:
        await engine.dispose()

    print(USAGE)
    return 2


if __name__ == "__main__":
    sys.exit(asyncio.run(run(sys.argv[1:])))
