"""
Query Model Validator

Checks a QueryModel against the live schema snapshot and the known-good join
suggestions before anything is compiled.

Passes:
1. Existence (fail-fast): every referenced column exists, every referenced
   table instance is in the model's column set, aliases are unambiguous.
2. Join legitimacy: every join matches a suggestion in either orientation,
   or is a type-compatible user-authored join (when allowed).
3. Connectivity: joins render in order and connect every participating
   table instance into one component.
4. Expressions: calculated columns and raw aggregate expressions stay within
   the allow-list; column transforms fit the column type.
5. Projection/aggregation: GROUP BY completeness (projection and ORDER BY)
   and HAVING targets.

Passes 2-5 accumulate: the caller gets every issue at once. The input model
is never mutated.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from loguru import logger
from sqlglot import exp

from joinengine.config.settings import settings
from joinengine.inference.models import JoinSuggestion, join_key
from joinengine.models.query_model import ColumnOrder, ColumnRef, AliasOrder, QueryModel
from joinengine.schema.models import SchemaSnapshot
from joinengine.schema.naming import types_compatible
from joinengine.sql.analysis.ast_utils import (
    ExpressionParseError,
    contains_aggregate,
    disallowed_constructs,
    extract_column_refs,
    parse_expression,
)
from joinengine.validation.errors import (
    AliasConflict,
    BrokenJoinChain,
    EmptySelection,
    ExpressionReason,
    GroupByReason,
    InvalidExpression,
    InvalidGroupBy,
    OrphanedTables,
    UnknownColumn,
    UnknownColumnReason,
    UnrecognizedJoin,
    ValidationIssue,
)

Instances = Dict[str, Tuple[str, str]]

# Type families each column transform accepts
_TRANSFORM_OPERANDS: Dict[str, Tuple[str, ...]] = {
    "DATE": ("timestamp",),
    "YEAR": ("timestamp",),
    "MONTH": ("timestamp",),
    "DAY": ("timestamp",),
    "UPPER": ("text",),
    "LOWER": ("text",),
    "TRIM": ("text",),
    "ROUND": ("numeric", "integer"),
}


class ModelValidator:
    """
    Usage:
        validator = ModelValidator(snapshot, suggestions)
        issues = validator.validate(model)
        if not issues:
            compiled = SQLCompiler().compile(model)
    """

    def __init__(
        self,
        snapshot: SchemaSnapshot,
        suggestions: Sequence[JoinSuggestion],
        allow_user_authored_joins: Optional[bool] = None,
    ):
        self.snapshot = snapshot
        self.suggestion_keys: Set[str] = {s.key for s in suggestions}
        self.allow_user_authored_joins = (
            settings.allow_user_authored_joins
            if allow_user_authored_joins is None
            else allow_user_authored_joins
        )
        self._parsed: Dict[str, Optional[exp.Expression]] = {}

    def validate(self, model: QueryModel) -> List[ValidationIssue]:
        """Return every issue found in the model (empty list when valid)"""
        model = model.model_copy(deep=True)

        if not model.plain_selected_columns and not model.calculated_columns and not model.has_aggregates:
            return [EmptySelection()]

        issue = self._check_existence(model)
        if issue is not None:
            logger.info(f"Query model rejected: {issue.message}")
            return [issue]

        issues: List[ValidationIssue] = []
        issues.extend(self._check_joins(model))
        issues.extend(self._check_connectivity(model))
        issues.extend(self._check_expressions(model))
        issues.extend(self._check_aggregation(model))

        if issues:
            logger.info(f"Query model rejected with {len(issues)} issue(s): {[i.error_type.value for i in issues]}")
        else:
            logger.debug("Query model validated")
        return issues

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _exists(self, schema: str, table: str, column: str) -> bool:
        return self.snapshot.column(schema, table, column) is not None

    def _parse(self, expression: str) -> Optional[exp.Expression]:
        if expression not in self._parsed:
            try:
                self._parsed[expression] = parse_expression(expression)
            except ExpressionParseError as e:
                logger.warning(f"Skipping unparseable aggregate expression: {e}")
                self._parsed[expression] = None
        return self._parsed[expression]

    @staticmethod
    def _iter_refs(model: QueryModel) -> Iterator[Tuple[str, ColumnRef]]:
        for i, join in enumerate(model.joins):
            yield f"joins[{i}]", join.left_ref
            yield f"joins[{i}]", join.right_ref
            for pred in join.extra_predicates:
                yield f"joins[{i}].extra_predicates", pred.left_column
                yield f"joins[{i}].extra_predicates", pred.right_column
        if model.group_by is not None:
            for ref in model.group_by.group_by_columns:
                yield "group_by.group_by_columns", ref
            for agg in model.group_by.aggregate_functions:
                yield "group_by.aggregate_functions", agg.column
        for i, flt in enumerate(model.filters):
            yield f"filters[{i}]", flt.column
        for i, order in enumerate(model.order_by):
            if isinstance(order, ColumnOrder):
                yield f"order_by[{i}]", order.column

    @staticmethod
    def _raw_expressions(model: QueryModel, calculated: bool = True) -> Iterator[Tuple[str, str, str]]:
        """(location, output alias, expression text) for every free-form expression"""
        if model.group_by is not None:
            for i, agg in enumerate(model.group_by.aggregate_expressions):
                yield f"group_by.aggregate_expressions[{i}]", agg.output_alias, agg.expression
        if calculated:
            for i, calc in enumerate(model.calculated_columns):
                yield f"calculated_columns[{i}]", calc.alias, calc.expression

    def _expression_refs(
        self, model: QueryModel, calculated: bool = True
    ) -> Iterator[Tuple[str, Optional[str], str, Optional[str]]]:
        """(location, qualifier, column, resolved instance) for every column inside raw expressions"""
        for location, _, expression in self._raw_expressions(model, calculated):
            ast = self._parse(expression)
            if ast is None:
                continue
            for qualifier, column in extract_column_refs(ast):
                yield location, qualifier, column, model.resolve_instance(qualifier, column)

    # ------------------------------------------------------------------
    # Pass 1: existence
    # ------------------------------------------------------------------

    @staticmethod
    def _register(instances: Instances, instance: str, schema: str, table: str) -> Optional[ValidationIssue]:
        existing = instances.get(instance)
        if existing is None:
            instances[instance] = (schema, table)
            return None
        if existing != (schema, table):
            return AliasConflict(
                alias=instance,
                tables=[f"{existing[0]}.{existing[1]}", f"{schema}.{table}"],
            )
        return None

    def _check_ref(self, instances: Instances, ref: ColumnRef, location: str) -> Optional[ValidationIssue]:
        if ref.instance not in instances:
            return UnknownColumn(
                table=ref.instance,
                column=ref.column,
                schema_name=ref.schema_name,
                reason=UnknownColumnReason.TABLE_NOT_IN_COLUMNS,
                location=location,
            )
        if instances[ref.instance] != (ref.schema_name, ref.table):
            schema, table = instances[ref.instance]
            return AliasConflict(
                alias=ref.instance,
                tables=[f"{schema}.{table}", f"{ref.schema_name}.{ref.table}"],
            )
        if not self._exists(ref.schema_name, ref.table, ref.column):
            return UnknownColumn(
                table=ref.table,
                column=ref.column,
                schema_name=ref.schema_name,
                location=location,
            )
        return None

    @staticmethod
    def _check_output_aliases(model: QueryModel) -> Optional[ValidationIssue]:
        seen: Dict[str, str] = {}
        outputs: List[Tuple[str, str]] = [
            (c.alias, c.label()) for c in model.plain_selected_columns if c.alias
        ]
        if model.group_by is not None:
            outputs += [(a.output_alias, f"{a.function}({a.column.label()})") for a in model.group_by.aggregate_functions]
            outputs += [(e.output_alias, e.expression) for e in model.group_by.aggregate_expressions]
        outputs += [(c.alias, c.expression) for c in model.calculated_columns]
        for alias, source in outputs:
            if alias in seen:
                return AliasConflict(alias=alias, tables=[seen[alias], source])
            seen[alias] = source
        return None

    def _known_output_names(self, model: QueryModel) -> Set[str]:
        names = set()
        for c in model.plain_selected_columns:
            names.add(c.output_name)
        names.update(c.alias for c in model.calculated_columns)
        if model.group_by is not None:
            names.update(model.group_by.output_aliases())
        return names

    def _check_existence(self, model: QueryModel) -> Optional[ValidationIssue]:
        instances: Instances = {}
        for col in model.columns:
            issue = self._register(instances, col.instance, col.schema_name, col.table)
            if issue is not None:
                return issue
            if not self._exists(col.schema_name, col.table, col.column):
                return UnknownColumn(
                    table=col.table,
                    column=col.column,
                    schema_name=col.schema_name,
                    location="columns",
                )

        issue = self._check_output_aliases(model)
        if issue is not None:
            return issue

        for location, ref in self._iter_refs(model):
            issue = self._check_ref(instances, ref, location)
            if issue is not None:
                return issue

        for location, qualifier, column, instance in self._expression_refs(model):
            if instance is None:
                return UnknownColumn(
                    table=qualifier or "",
                    column=column,
                    reason=UnknownColumnReason.UNRESOLVED_REFERENCE,
                    location=location,
                )
            schema, table = instances[instance]
            if not self._exists(schema, table, column):
                return UnknownColumn(table=table, column=column, schema_name=schema, location=location)

        known = self._known_output_names(model)
        for i, order in enumerate(model.order_by):
            if isinstance(order, AliasOrder) and order.alias not in known:
                return UnknownColumn(
                    table="",
                    column=order.alias,
                    reason=UnknownColumnReason.UNKNOWN_ALIAS,
                    location=f"order_by[{i}]",
                )
        return None

    # ------------------------------------------------------------------
    # Pass 2: join legitimacy
    # ------------------------------------------------------------------

    def _check_joins(self, model: QueryModel) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for i, join in enumerate(model.joins):
            left, right = join.left_ref, join.right_ref
            if join_key(left.qualified, right.qualified) in self.suggestion_keys:
                continue

            if not join.user_authored:
                reason = "no_matching_suggestion"
            elif not self.allow_user_authored_joins:
                reason = "user_authored_joins_disabled"
            else:
                left_col = self.snapshot.column(left.schema_name, left.table, left.column)
                right_col = self.snapshot.column(right.schema_name, right.table, right.column)
                if types_compatible(left_col.data_type, right_col.data_type):
                    continue
                reason = "incompatible_types"

            issues.append(
                UnrecognizedJoin(left=left.label(), right=right.label(), join_index=i, reason=reason)
            )
        return issues

    # ------------------------------------------------------------------
    # Pass 3: connectivity
    # ------------------------------------------------------------------

    def _participating_instances(self, model: QueryModel) -> List[str]:
        """Instances the rendered query must reach: selected plus every referenced instance"""
        participating: List[str] = list(model.selected_instances())

        def add(instance: Optional[str]):
            if instance and instance not in participating:
                participating.append(instance)

        for col in model.columns:
            if col.is_aggregate_only:
                add(col.instance)
        if model.group_by is not None:
            for ref in model.group_by.group_by_columns:
                add(ref.instance)
            for agg in model.group_by.aggregate_functions:
                add(agg.column.instance)
        for _, _, _, instance in self._expression_refs(model):
            add(instance)
        for flt in model.filters:
            add(flt.column.instance)
        for order in model.order_by:
            if isinstance(order, ColumnOrder):
                add(order.column.instance)
        return participating

    def _check_connectivity(self, model: QueryModel) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        if model.joins:
            introduced = {model.joins[0].left_instance}
            for i, join in enumerate(model.joins):
                left_in = join.left_instance in introduced
                right_in = join.right_instance in introduced
                if left_in and right_in:
                    issues.append(BrokenJoinChain(join_index=i, join=join.describe(), reason="both_sides_introduced"))
                elif not left_in and not right_in:
                    issues.append(BrokenJoinChain(join_index=i, join=join.describe(), reason="neither_side_introduced"))
                else:
                    introduced.add(join.right_instance if left_in else join.left_instance)

        participating = self._participating_instances(model)
        if len(participating) < 2:
            return issues

        parent: Dict[str, str] = {inst: inst for inst in model.table_instances()}

        def find(x: str) -> str:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        for join in model.joins:
            a, b = find(join.left_instance), find(join.right_instance)
            if a != b:
                parent[b] = a

        components: Dict[str, List[str]] = {}
        for inst in participating:
            components.setdefault(find(inst), []).append(inst)

        if len(components) > 1:
            first_root = find(participating[0])
            main_root = max(
                components,
                key=lambda root: (len(components[root]), root == first_root),
            )
            orphans = [inst for inst in participating if find(inst) != main_root]
            issues.append(OrphanedTables(tables=orphans))

        return issues

    # ------------------------------------------------------------------
    # Pass 4: expressions
    # ------------------------------------------------------------------

    def _check_expressions(self, model: QueryModel) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        for location, alias, expression in self._raw_expressions(model):
            ast = self._parse(expression)
            if ast is None:
                continue
            blocked = disallowed_constructs(ast)
            if blocked:
                issues.append(
                    InvalidExpression(
                        alias=alias,
                        expression=expression,
                        reason=ExpressionReason.DISALLOWED_CONSTRUCT,
                        constructs=blocked,
                    )
                )
            if location.startswith("calculated_columns") and contains_aggregate(ast):
                issues.append(
                    InvalidExpression(alias=alias, expression=expression, reason=ExpressionReason.AGGREGATE_NOT_ALLOWED)
                )

        for col in model.columns:
            if col.transform is None:
                continue
            info = self.snapshot.column(col.schema_name, col.table, col.column)
            if not any(types_compatible(info.data_type, family) for family in _TRANSFORM_OPERANDS[col.transform]):
                issues.append(
                    InvalidExpression(
                        alias=col.output_name,
                        expression=f"{col.transform}({col.label()})",
                        reason=ExpressionReason.TRANSFORM_TYPE_MISMATCH,
                    )
                )

        return issues

    # ------------------------------------------------------------------
    # Pass 5: projection / aggregation
    # ------------------------------------------------------------------

    def _aggregate_inputs(self, model: QueryModel) -> Set[Tuple[str, str]]:
        inputs: Set[Tuple[str, str]] = set()
        for agg in model.group_by.aggregate_functions:
            inputs.add((agg.column.instance, agg.column.column))
        for _, _, column, instance in self._expression_refs(model, calculated=False):
            if instance is not None:
                inputs.add((instance, column))
        return inputs

    def _calculated_refs(self, model: QueryModel) -> List[Tuple[str, str]]:
        refs: List[Tuple[str, str]] = []
        for location, _, column, instance in self._expression_refs(model):
            if location.startswith("calculated_columns") and instance is not None and (instance, column) not in refs:
                refs.append((instance, column))
        return refs

    def _check_aggregation(self, model: QueryModel) -> List[ValidationIssue]:
        gb = model.group_by
        if gb is None:
            return []

        issues: List[ValidationIssue] = []
        outputs = set(gb.output_aliases())
        for having in gb.having_conditions:
            if having.target not in outputs:
                issues.append(InvalidGroupBy(column=having.target, reason=GroupByReason.UNKNOWN_HAVING_TARGET))

        if not gb.has_aggregates and not gb.group_by_columns:
            return issues

        grouped = {(ref.instance, ref.column) for ref in gb.group_by_columns}
        calculated = self._calculated_refs(model)
        plain = {(c.instance, c.column) for c in model.plain_selected_columns} | set(calculated)

        reported: Set[Tuple[str, str]] = set()
        projected = [(c.instance, c.column) for c in model.plain_selected_columns] + calculated
        for key in projected:
            if key not in grouped and key not in reported:
                reported.add(key)
                issues.append(InvalidGroupBy(column=f"{key[0]}.{key[1]}", reason=GroupByReason.MISSING_FROM_GROUP_BY))

        inputs = self._aggregate_inputs(model)
        for ref in gb.group_by_columns:
            key = (ref.instance, ref.column)
            if key in inputs and key not in plain:
                issues.append(InvalidGroupBy(column=ref.label(), reason=GroupByReason.WRONGLY_INCLUDED))

        for col in model.columns:
            if col.is_selected and col.is_aggregate_only:
                issues.append(InvalidGroupBy(column=col.label(), reason=GroupByReason.AGGREGATE_INPUT_SELECTED))

        for agg in gb.aggregate_expressions:
            ast = self._parse(agg.expression)
            if ast is not None and not contains_aggregate(ast):
                issues.append(InvalidGroupBy(column=agg.output_alias, reason=GroupByReason.NOT_AN_AGGREGATE))

        # Grouped queries can only sort on grouped columns or output aliases
        for order in model.order_by:
            if isinstance(order, ColumnOrder) and (order.column.instance, order.column.column) not in grouped:
                issues.append(InvalidGroupBy(column=order.column.label(), reason=GroupByReason.ORDER_BY_NOT_GROUPED))

        return issues
