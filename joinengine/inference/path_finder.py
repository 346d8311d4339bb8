"""
Join path finder using Dijkstra's algorithm over inferred join suggestions.

Used to connect tables a producer selected without saying how they relate:
the shortest, most confident chain of suggestions is written into the query
model as explicit joins.
"""

import heapq
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger

from joinengine.inference.models import JoinSuggestion


def table_node(schema: str, table: str) -> str:
    return f"{schema}.{table}"


class JoinPathFinder:
    """
    Shortest join paths between tables over the suggestion graph.

    Instead of finding ALL paths between ALL pairs (exponential), this:
    1. Uses Dijkstra to find SHORTEST paths
    2. Computes paths on-demand for selected tables
    3. Caches results for performance
    """

    def __init__(
        self,
        suggestions: Sequence[JoinSuggestion],
        min_confidence: float = 0.0,
        include_many_to_many: bool = False,
    ):
        """
        Args:
            suggestions: Inferred join suggestions (edges)
            min_confidence: Suggestions below this confidence are not used
            include_many_to_many: Also walk N:N sibling joins (they fan out rows)
        """
        self.suggestions = list(suggestions)
        self.min_confidence = min_confidence
        self.include_many_to_many = include_many_to_many
        self._graph = self._build_graph()
        self._cache: Dict[Tuple[str, str, int], Optional[List[JoinSuggestion]]] = {}

        logger.debug(f"Initialized JoinPathFinder with {len(self._graph)} nodes")

    def _build_graph(self) -> Dict[str, List[Tuple[str, JoinSuggestion]]]:
        """
        Build adjacency list from suggestions.

        Returns:
            Dict mapping table node -> [(neighbor_node, suggestion), ...]
        """
        graph = defaultdict(list)

        for s in self.suggestions:
            if s.confidence < self.min_confidence:
                continue
            if s.cardinality == "N:N" and not self.include_many_to_many:
                continue

            left = table_node(s.left_schema, s.left_table)
            right = table_node(s.right_schema, s.right_table)
            if left == right:
                continue

            # Joins work both ways
            graph[left].append((right, s))
            graph[right].append((left, s))

        return dict(graph)

    def find_shortest_path(self, start: str, end: str, max_hops: int = 4) -> Optional[List[JoinSuggestion]]:
        """
        Find shortest path between two table nodes ("schema.table").

        Returns:
            Suggestions along the path in order from start to end, [] when
            start == end, or None if no path exists within max_hops
        """
        cache_key = (start, end, max_hops)
        if cache_key in self._cache:
            return self._cache[cache_key]

        if start == end:
            self._cache[cache_key] = []
            return []

        if start not in self._graph or end not in self._graph:
            self._cache[cache_key] = None
            return None

        # Priority queue: (distance, tie_breaker, current_node, path_so_far, nodes_on_path)
        tie_breaker = 0
        pq = [(0.0, tie_breaker, start, [], (start,))]
        # Keyed on (node, hops): a node reached over more hops does not block a
        # costlier route that reaches it in fewer
        visited: Set[Tuple[str, int]] = set()

        while pq:
            distance, _, current, path, on_path = heapq.heappop(pq)

            state = (current, len(path))
            if state in visited:
                continue
            visited.add(state)

            if current == end:
                self._cache[cache_key] = path
                return path

            if len(path) >= max_hops:
                continue

            for neighbor, suggestion in self._graph.get(current, []):
                if neighbor in on_path or (neighbor, len(path) + 1) in visited:
                    continue

                # Confidence 1.0 = weight 0, lower confidence = higher weight
                weight = 1.0 - suggestion.confidence
                tie_breaker += 1
                heapq.heappush(
                    pq,
                    (distance + 1 + weight, tie_breaker, neighbor, path + [suggestion], on_path + (neighbor,)),
                )

        self._cache[cache_key] = None
        return None

    def connect(self, nodes: Sequence[str], max_hops: int = 4) -> Tuple[List[JoinSuggestion], List[str]]:
        """
        Grow a connected tree from the first node, attaching each remaining node
        through its shortest path to any node already in the tree.

        Returns:
            (suggestions in attachment order, nodes that could not be reached)
        """
        if not nodes:
            return [], []

        connected: List[str] = [nodes[0]]
        edges: List[JoinSuggestion] = []
        seen_edges: Set[str] = set()
        unreachable: List[str] = []

        for node in nodes[1:]:
            if node in connected:
                continue

            best: Optional[List[JoinSuggestion]] = None
            for anchor in connected:
                path = self.find_shortest_path(anchor, node, max_hops)
                if path is not None and (best is None or len(path) < len(best)):
                    best = path

            if best is None:
                unreachable.append(node)
                continue

            for s in best:
                if s.key not in seen_edges:
                    seen_edges.add(s.key)
                    edges.append(s)
                for endpoint in (table_node(s.left_schema, s.left_table), table_node(s.right_schema, s.right_table)):
                    if endpoint not in connected:
                        connected.append(endpoint)

        if unreachable:
            logger.warning(f"No join path found for tables: {unreachable}")
        return edges, unreachable

    def get_path_description(self, path: List[JoinSuggestion]) -> str:
        if not path:
            return "Direct relationship (same table or no joins needed)"

        parts = []
        for s in path:
            parts.append(
                f"{s.left_table}.{s.left_column} = {s.right_table}.{s.right_column} "
                f"({s.cardinality}, conf: {s.confidence:.2f})"
            )
        return " → ".join(parts)
