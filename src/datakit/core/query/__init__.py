"""Query functionality: condition model, builder and compilation."""

from datakit.core.query.builder import ConditionBuilder, GroupScope, Query
from datakit.core.query.conditions import ConditionSet, ScopeHandle
from datakit.core.query.models import (
    CachePolicy,
    Condition,
    Group,
    Logic,
    OperandShape,
    Operator,
    Ordering,
    QueryDescription,
    RegexOperand,
    RegexOption,
    SortDirection,
)
from datakit.core.query.operations import (
    compile_query,
    make_condition,
    validate_key,
    validate_operand,
)

__all__ = [
    # Builder
    "Query",
    "GroupScope",
    "ConditionBuilder",
    # Condition model
    "ConditionSet",
    "ScopeHandle",
    "Condition",
    "Group",
    "Logic",
    "Operator",
    "OperandShape",
    "RegexOperand",
    "RegexOption",
    # Options
    "Ordering",
    "SortDirection",
    "CachePolicy",
    # Compilation
    "QueryDescription",
    "compile_query",
    "make_condition",
    "validate_key",
    "validate_operand",
]
