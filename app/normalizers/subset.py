# app/normalizers/subset.py
from typing import List, Set

from .types import NormalizedSchema, NormalizedTable


def table_dependencies(table: NormalizedTable, tables: List[NormalizedTable]) -> Set[str]:
    """
    Tables that must exist alongside `table` for its links to be created:
    the tables it links to, and the tables linking to it (the inverse side
    is created from there).
    """
    deps: Set[str] = set()
    for lf in table.link_fields:
        if lf.linked_table_name and lf.linked_table_name != table.name:
            deps.add(lf.linked_table_name)
    for other in tables:
        if other.name == table.name:
            continue
        if any(lf.linked_table_name == table.name for lf in other.link_fields):
            deps.add(other.name)
    return deps


def subset_for_table(schema: NormalizedSchema, table_name: str) -> NormalizedSchema:
    """Schema holding one table plus its dependency tables, in schema order after it."""
    table = schema.table(table_name)
    if table is None:
        raise KeyError(table_name)

    deps = table_dependencies(table, schema.tables)
    included = [table] + [t for t in schema.tables if t.name in deps]

    return schema.model_copy(update={
        "name": f"{schema.name} - {table.name}",
        "table_count": len(included),
        "tables": included,
        "primary_table": table.name,
        "out_of_scope_tables": [t.name for t in schema.tables if t.name != table.name and t.name not in deps],
    })
