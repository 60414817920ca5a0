"""Result-clause indexing: validate clauses and derive accessor names.

Each clause of a function is built by its own generated accessor,
<function>_result_<labels joined by _>. The outbound message clause gets a
send function, send_<labels joined by _>.
"""

from __future__ import annotations

from dataclasses import replace

from .errors import DuplicateAccessorName, DuplicateResultName, EmptyLabelSet
from .ir import FunctionSpec, Loc, ResultClause, SendSpec
from .normalize import Record


def accessor_name(function: str, clause: ResultClause) -> str:
    return function + "_result_" + "_".join(clause.labels())


def send_function_name(clause: ResultClause) -> str:
    return "send_" + "_".join(clause.labels())


def _check_clause(owner: str, index: int, clause: ResultClause, loc: Loc) -> None:
    if len(clause.labels()) == 0:
        raise EmptyLabelSet(owner, index, loc.line, loc.col)
    seen: set[str] = set()
    for item in clause.values():
        if item.name in seen:
            raise DuplicateResultName(owner, item.name, loc.line, loc.col)
        seen.add(item.name)


def index_function(fun: FunctionSpec) -> FunctionSpec:
    clauses: list[ResultClause] = []
    names: set[str] = set()
    for i, clause in enumerate(fun.results):
        _check_clause(fun.name, i, clause, fun.loc)
        name = accessor_name(fun.name, clause)
        if name in names:
            raise DuplicateAccessorName(fun.name, name, fun.loc.line, fun.loc.col)
        names.add(name)
        clauses.append(replace(clause, accessor_name=name))
    return replace(fun, results=tuple(clauses))


def index_sends(sends: SendSpec) -> SendSpec:
    _check_clause("sends", 0, sends.clause, sends.loc)
    name = send_function_name(sends.clause)
    return replace(sends, clause=replace(sends.clause, accessor_name=name), function_name=name)


def index_results(records: list[Record]) -> list[Record]:
    indexed: list[Record] = []
    for record in records:
        if isinstance(record, FunctionSpec):
            indexed.append(index_function(record))
        elif isinstance(record, SendSpec):
            indexed.append(index_sends(record))
        else:
            indexed.append(record)
    return indexed
