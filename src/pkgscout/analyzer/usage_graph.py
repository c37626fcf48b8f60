"""Usage aggregation using NetworkX.

Edge (namespace, declaration) means "code in this namespace references this
declaration". Parallel references collapse into one edge that keeps every site.
"""
from typing import FrozenSet, Iterable, List, Tuple
import networkx as nx

from .models import Usage


NAMESPACE = 'namespace'
DECLARATION = 'declaration'


class UsageGraph:
    """Directed namespace -> declaration reference graph."""

    def __init__(self):
        self.graph = nx.DiGraph()

    @classmethod
    def from_usages(cls, usages: Iterable[Usage]) -> "UsageGraph":
        """Aggregate a sequence of usages.

        Args:
            usages: Resolved usages from every file

        Returns:
            Populated UsageGraph
        """
        graph = cls()
        for usage in usages:
            graph.add_usage(usage)
        return graph

    def add_usage(self, usage: Usage):
        source = (NAMESPACE, usage.referencing_namespace)
        target = (DECLARATION, usage.target_qualified_name)
        site = (usage.file_path, usage.line)
        if self.graph.has_edge(source, target):
            self.graph.edges[source, target]['sites'].append(site)
        else:
            self.graph.add_edge(source, target, sites=[site])

    def referencing_namespaces(self, qualified_name: str) -> FrozenSet[str]:
        """Distinct namespaces referencing a declaration (empty if never referenced)."""
        node = (DECLARATION, qualified_name)
        if node not in self.graph:
            return frozenset()
        return frozenset(namespace for _, namespace in self.graph.predecessors(node))

    def usage_sites(self, qualified_name: str) -> List[Tuple[str, str, int]]:
        """Every (namespace, file, line) referencing a declaration, sorted."""
        node = (DECLARATION, qualified_name)
        if node not in self.graph:
            return []
        sites = []
        for source, _, data in self.graph.in_edges(node, data=True):
            sites.extend((source[1], file_path, line) for file_path, line in data['sites'])
        return sorted(sites)
