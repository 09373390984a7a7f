"""
Schema analysis and relationship detection utilities
"""

import networkx as nx
from typing import Dict, List, Any
from ..database.models import TableSchema


class SchemaAnalyzer:
    """Analyze foreign-key relationships between tables"""

    def __init__(self):
        self.relationship_graph = nx.DiGraph()

    def analyze(self, tables: List[TableSchema]) -> Dict[str, Any]:
        """Analyze schemas and return insights"""
        self.build_relationship_graph(tables)

        return {
            'relationships': self.get_relationships(),
            'circular_references': self.find_circular_references(),
            'insertion_order': self.get_insertion_order(),
            'deletion_order': self.get_deletion_order()
        }

    def build_relationship_graph(self, tables: List[TableSchema]):
        """Edges point from the referencing table to the referenced table"""
        self.relationship_graph.clear()

        for table in tables:
            self.relationship_graph.add_node(table.table_name)

        for table in tables:
            for constraint in table.constraints:
                if constraint.constraint_type != 'FOREIGN KEY' or not constraint.foreign_table:
                    continue
                self.relationship_graph.add_edge(
                    table.table_name,
                    constraint.foreign_table,
                    constraint_name=constraint.constraint_name,
                    from_columns=list(constraint.column_names),
                    to_columns=list(constraint.foreign_columns)
                )

    def get_relationships(self) -> List[Dict[str, Any]]:
        relationships = []
        for from_table, to_table, data in self.relationship_graph.edges(data=True):
            relationships.append({
                'from_table': from_table,
                'from_columns': data.get('from_columns', []),
                'to_table': to_table,
                'to_columns': data.get('to_columns', []),
                'constraint_name': data.get('constraint_name'),
                'type': 'foreign_key'
            })
        return relationships

    def get_dependent_tables(self, table_name: str) -> List[str]:
        """Tables that reference ``table_name``, directly or transitively"""
        if table_name not in self.relationship_graph:
            return []
        dependents = nx.ancestors(self.relationship_graph, table_name)
        dependents.discard(table_name)
        return sorted(dependents)

    def find_circular_references(self) -> List[List[str]]:
        return [cycle for cycle in nx.simple_cycles(self.relationship_graph)]

    def get_insertion_order(self) -> List[str]:
        """Referenced tables first, so inserts never violate a foreign key"""
        graph = self._acyclic_graph()
        return list(reversed(list(nx.topological_sort(graph))))

    def get_deletion_order(self) -> List[str]:
        return list(reversed(self.get_insertion_order()))

    def _acyclic_graph(self) -> nx.DiGraph:
        # self references and cycles cannot be ordered; drop those edges
        graph = self.relationship_graph.copy()
        graph.remove_edges_from(list(nx.selfloop_edges(graph)))
        while not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            graph.remove_edge(*cycle[0][:2])
        return graph
