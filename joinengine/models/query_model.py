"""
Query Model - declarative, serializable multi-table query

The model is the single source of truth for a query under construction. It is
built by an external producer (manual builder UI or an AI modeler), always
validated before compilation, and changed by returning new copies.

Table instances are identified by their visible name: `table_alias` when
given, otherwise the physical table name. Two references to the same visible
name must point at the same physical table.
"""

from typing import Annotated, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from joinengine.config.constants import UNBOUNDED
from joinengine.inference.path_finder import JoinPathFinder, table_node

JoinKind = Literal["INNER", "LEFT", "RIGHT", "FULL"]
Logic = Literal["AND", "OR"]
ComparisonOperator = Literal["=", "!=", "<>", ">", "<", ">=", "<=", "LIKE", "ILIKE", "NOT LIKE"]
AggregateName = Literal["SUM", "AVG", "COUNT", "MIN", "MAX"]
SortDirection = Literal["ASC", "DESC"]
TransformName = Literal["DATE", "YEAR", "MONTH", "DAY", "UPPER", "LOWER", "TRIM", "ROUND"]
Scalar = Union[bool, int, float, str]


def _upper(value):
    return value.strip().upper() if isinstance(value, str) else value


class ColumnRef(BaseModel):
    """Reference to a column of a table instance"""
    schema_name: str
    table: str
    table_alias: Optional[str] = None
    column: str

    @property
    def instance(self) -> str:
        """Visible name of the table instance (alias, else table)"""
        return self.table_alias or self.table

    @property
    def qualified(self) -> str:
        return f"{self.schema_name}.{self.table}.{self.column}"

    def label(self) -> str:
        return f"{self.instance}.{self.column}"


class SelectedColumn(ColumnRef):
    """
    A column of the model's table set.

    is_selected=False keeps the table instance in the set (e.g. a junction
    table reached only through joins) without projecting the column.
    is_aggregate_only marks a column consumed exclusively by an aggregate.
    transform wraps the projected value (e.g. YEAR of a timestamp); grouping
    still uses the raw column.
    """
    alias: Optional[str] = None
    is_selected: bool = True
    is_aggregate_only: bool = False
    transform: Optional[TransformName] = None

    @field_validator("transform", mode="before")
    @classmethod
    def normalize_transform(cls, v):
        return _upper(v)

    @property
    def output_name(self) -> str:
        if self.alias:
            return self.alias
        if self.transform:
            return f"{self.transform.lower()}_{self.column}"
        return self.column


class JoinPredicate(BaseModel):
    """Additional ON predicate between two columns, chained with AND/OR"""
    logic: Logic = "AND"
    left_column: ColumnRef
    operator: ComparisonOperator = "="
    right_column: ColumnRef

    @field_validator("logic", "operator", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


class JoinClause(BaseModel):
    left_schema: str
    left_table: str
    left_alias: Optional[str] = None
    left_column: str
    right_schema: str
    right_table: str
    right_alias: Optional[str] = None
    right_column: str
    join_kind: JoinKind = "INNER"
    extra_predicates: List[JoinPredicate] = Field(default_factory=list)
    user_authored: bool = False

    @field_validator("join_kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        return _upper(v)

    @property
    def left_ref(self) -> ColumnRef:
        return ColumnRef(
            schema_name=self.left_schema,
            table=self.left_table,
            table_alias=self.left_alias,
            column=self.left_column,
        )

    @property
    def right_ref(self) -> ColumnRef:
        return ColumnRef(
            schema_name=self.right_schema,
            table=self.right_table,
            table_alias=self.right_alias,
            column=self.right_column,
        )

    @property
    def left_instance(self) -> str:
        return self.left_alias or self.left_table

    @property
    def right_instance(self) -> str:
        return self.right_alias or self.right_table

    def describe(self) -> str:
        return f"{self.left_ref.label()} = {self.right_ref.label()}"


class AggregateFunction(BaseModel):
    column: ColumnRef
    function: AggregateName
    alias: Optional[str] = None
    distinct: bool = False

    @field_validator("function", mode="before")
    @classmethod
    def normalize_function(cls, v):
        return _upper(v)

    @property
    def output_alias(self) -> str:
        return self.alias or f"{self.function.lower()}_{self.column.column}"


class AggregateExpression(BaseModel):
    """
    Free-form aggregate expression, e.g. "SUM(orders.quantity * orders.price)".

    Column qualifiers are table instance names; `[[` `]]` wrappers inserted by
    the builder UI are stripped before parsing.
    """
    raw_expression: str
    alias: Optional[str] = None

    @property
    def output_alias(self) -> str:
        return self.alias or "agg_expr"

    @property
    def expression(self) -> str:
        return self.raw_expression.replace("[[", "").replace("]]", "").strip()


class CalculatedColumn(BaseModel):
    """
    Row-level expression projected under `alias`, e.g.
    "order_items.quantity * products.price". Qualifiers follow the same rules
    as aggregate expressions; aggregates belong in aggregate_expressions.
    """
    expression: str = Field(min_length=1)
    alias: str = Field(min_length=1)


class HavingCondition(BaseModel):
    """Condition on an aggregate, addressed by the aggregate's output alias"""
    target: str
    operator: ComparisonOperator
    value: Scalar
    logic: Logic = "AND"

    @field_validator("operator", "logic", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


class GroupByClause(BaseModel):
    group_by_columns: List[ColumnRef] = Field(default_factory=list)
    aggregate_functions: List[AggregateFunction] = Field(default_factory=list)
    aggregate_expressions: List[AggregateExpression] = Field(default_factory=list)
    having_conditions: List[HavingCondition] = Field(default_factory=list)

    @property
    def has_aggregates(self) -> bool:
        return bool(self.aggregate_functions or self.aggregate_expressions)

    def output_aliases(self) -> List[str]:
        return [a.output_alias for a in self.aggregate_functions] + [
            e.output_alias for e in self.aggregate_expressions
        ]


# ----------------------------------------------------------------------------
# Filters (discriminated on `kind`)
# ----------------------------------------------------------------------------

class ComparisonFilter(BaseModel):
    kind: Literal["comparison"] = "comparison"
    column: ColumnRef
    operator: ComparisonOperator
    value: Scalar
    logic: Logic = "AND"

    @field_validator("operator", "logic", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


class MembershipFilter(BaseModel):
    kind: Literal["membership"] = "membership"
    column: ColumnRef
    values: List[Scalar] = Field(min_length=1)
    negate: bool = False
    logic: Logic = "AND"

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


class NullCheckFilter(BaseModel):
    kind: Literal["null_check"] = "null_check"
    column: ColumnRef
    is_null: bool = True
    logic: Logic = "AND"

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


Filter = Annotated[
    Union[ComparisonFilter, MembershipFilter, NullCheckFilter],
    Field(discriminator="kind"),
]


# ----------------------------------------------------------------------------
# Ordering (discriminated on `kind`)
# ----------------------------------------------------------------------------

class ColumnOrder(BaseModel):
    kind: Literal["column"] = "column"
    column: ColumnRef
    direction: SortDirection = "ASC"

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


class AliasOrder(BaseModel):
    """Order by an output alias (column alias or aggregate alias)"""
    kind: Literal["alias"] = "alias"
    alias: str
    direction: SortDirection = "ASC"

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_case(cls, v):
        return _upper(v)


OrderBy = Annotated[Union[ColumnOrder, AliasOrder], Field(discriminator="kind")]


class QueryModel(BaseModel):
    """
    Declarative multi-table query.

    limit / offset use -1 as the "all rows" sentinel; 0 is an explicit zero.
    """
    columns: List[SelectedColumn] = Field(default_factory=list)
    calculated_columns: List[CalculatedColumn] = Field(default_factory=list)
    joins: List[JoinClause] = Field(default_factory=list)
    group_by: Optional[GroupByClause] = None
    filters: List[Filter] = Field(default_factory=list)
    order_by: List[OrderBy] = Field(default_factory=list)
    limit: int = Field(default=UNBOUNDED, ge=UNBOUNDED)
    offset: int = Field(default=UNBOUNDED, ge=UNBOUNDED)

    def copy_model(self) -> "QueryModel":
        return self.model_copy(deep=True)

    @property
    def selected_columns(self) -> List[SelectedColumn]:
        return [c for c in self.columns if c.is_selected]

    @property
    def plain_selected_columns(self) -> List[SelectedColumn]:
        """Selected columns that are projected as-is (not aggregate inputs)"""
        return [c for c in self.columns if c.is_selected and not c.is_aggregate_only]

    @property
    def has_aggregates(self) -> bool:
        return self.group_by is not None and self.group_by.has_aggregates

    def table_instances(self) -> Dict[str, Tuple[str, str]]:
        """Visible instance name -> (schema, table), in first-appearance order"""
        instances: Dict[str, Tuple[str, str]] = {}
        for col in self.columns:
            instances.setdefault(col.instance, (col.schema_name, col.table))
        return instances

    def resolve_instance(self, qualifier: Optional[str], column: str) -> Optional[str]:
        """
        Resolve the qualifier of a column inside a raw expression to a table
        instance: an instance name, a table name used by exactly one instance,
        or (unqualified) the only instance listing that column.
        """
        instances = self.table_instances()
        if qualifier:
            if qualifier in instances:
                return qualifier
            matches = [inst for inst, (_, table) in instances.items() if table == qualifier]
            return matches[0] if len(matches) == 1 else None

        if len(instances) == 1:
            return next(iter(instances))
        owners: List[str] = []
        for col in self.columns:
            if col.column == column and col.instance not in owners:
                owners.append(col.instance)
        return owners[0] if len(owners) == 1 else None

    def selected_instances(self) -> List[str]:
        seen: List[str] = []
        for col in self.selected_columns:
            if col.instance not in seen:
                seen.append(col.instance)
        return seen


# ----------------------------------------------------------------------------
# Auto-join attachment
# ----------------------------------------------------------------------------

def _introduced_instances(model: QueryModel) -> List[str]:
    if model.joins:
        introduced = [model.joins[0].left_instance]
        for join in model.joins:
            for inst in (join.left_instance, join.right_instance):
                if inst not in introduced:
                    introduced.append(inst)
        return introduced
    selected = model.selected_instances()
    return selected[:1]


def attach_suggested_joins(model: QueryModel, suggestions: Sequence, max_hops: int = 4) -> QueryModel:
    """
    Connect the model's selected tables through the best inferred join paths.

    Returns a new QueryModel with the joins written into it. Tables reached
    only as intermediates (e.g. junctions) are added to `columns` with
    is_selected=False. Aliased instances are left alone: self-joins need
    explicit joins. The input model is not modified.
    """
    result = model.copy_model()
    instances = result.table_instances()

    nodes: List[str] = []
    node_instance: Dict[str, str] = {}
    for inst in result.selected_instances():
        schema, table = instances[inst]
        if inst != table:
            continue
        node = table_node(schema, table)
        nodes.append(node)
        node_instance[node] = inst

    introduced = _introduced_instances(result)
    if not introduced or introduced[0] not in instances:
        return result
    first_schema, first_table = instances[introduced[0]]
    if introduced[0] != first_table:
        # FROM table is an aliased instance; its joins must be explicit
        return result
    first = table_node(first_schema, first_table)
    if first in nodes:
        nodes.remove(first)
    nodes.insert(0, first)
    if len(nodes) < 2:
        return result

    existing = {
        frozenset((j.left_ref.qualified, j.right_ref.qualified)) for j in result.joins
    }
    finder = JoinPathFinder(suggestions)
    path, _unreachable = finder.connect(nodes, max_hops=max_hops)

    pending = [s for s in path if frozenset((s.left_key, s.right_key)) not in existing]
    while pending:
        progressed = False
        for s in list(pending):
            left_in = s.left_table in introduced
            right_in = s.right_table in introduced
            if left_in and right_in:
                pending.remove(s)
                progressed = True
                continue
            if not left_in and not right_in:
                continue

            if left_in:
                lt = (s.left_schema, s.left_table, s.left_column)
                rt = (s.right_schema, s.right_table, s.right_column)
            else:
                lt = (s.right_schema, s.right_table, s.right_column)
                rt = (s.left_schema, s.left_table, s.left_column)

            result.joins.append(
                JoinClause(
                    left_schema=lt[0],
                    left_table=lt[1],
                    left_column=lt[2],
                    right_schema=rt[0],
                    right_table=rt[1],
                    right_column=rt[2],
                    join_kind=s.suggested_join_kind,
                )
            )
            introduced.append(rt[1])
            if rt[1] not in instances:
                result.columns.append(
                    SelectedColumn(schema_name=rt[0], table=rt[1], column=rt[2], is_selected=False)
                )
                instances[rt[1]] = (rt[0], rt[1])
            pending.remove(s)
            progressed = True
        if not progressed:
            break

    return result
