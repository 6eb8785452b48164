"""
Prerequisite Graph - topic dependency DAG for prerequisite gating.

Features:
    - Prerequisite relationships as directed edges (prerequisite -> topic)
    - Loading from a mapping or a directory of JSON concept files
    - Prerequisite mastery lookup for the variant selector
    - Learning path ordering for weak prerequisites
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Set, Union

import networkx as nx

DEFAULT_MASTERY = 0.5


class PrerequisiteGraph:
    """
    Directed acyclic graph of topics.

    Edge u -> v means u must be learned before v.
    """

    def __init__(self, prerequisites: Mapping[str, Iterable[str]] = None):
        self.graph = nx.DiGraph()
        for topic, prereqs in (prerequisites or {}).items():
            self.add_topic(topic, prereqs)

    @classmethod
    def from_directory(cls, data_dir: Union[str, Path]) -> "PrerequisiteGraph":
        """
        Load every *.json file under data_dir (recursively).

        A file holds either one concept {"id", "prerequisites"} or
        {"concepts": [...]}.
        """
        graph = cls()
        data_dir = Path(data_dir)
        if not data_dir.exists():
            return graph

        for concept_file in sorted(data_dir.rglob("*.json")):
            with open(concept_file, "r", encoding="utf-8") as f:
                data = json.load(f)

            concepts = data["concepts"] if "concepts" in data else [data]
            for concept in concepts:
                graph.add_topic(concept["id"], concept.get("prerequisites", []))

        return graph

    def add_topic(self, topic: str, prerequisites: Iterable[str] = ()):
        """Add a topic and its prerequisite edges; rejects cycles."""
        self.graph.add_node(topic)
        added = []
        for prereq in prerequisites:
            if not self.graph.has_edge(prereq, topic):
                self.graph.add_edge(prereq, topic)
                added.append(prereq)

        if not nx.is_directed_acyclic_graph(self.graph):
            self.graph.remove_edges_from((p, topic) for p in added)
            raise ValueError(f"Prerequisites of {topic!r} would create a cycle")

    # ==================== Query Methods ====================

    def __contains__(self, topic: str) -> bool:
        return topic in self.graph

    def topics(self) -> List[str]:
        """All topics in topological order."""
        return list(nx.topological_sort(self.graph))

    def prerequisites(self, topic: str) -> List[str]:
        """Immediate prerequisites (one level up)."""
        if topic not in self.graph:
            return []
        return sorted(self.graph.predecessors(topic))

    def all_prerequisites(self, topic: str) -> Set[str]:
        """All prerequisites recursively."""
        if topic not in self.graph:
            return set()
        return nx.ancestors(self.graph, topic)

    # ==================== Mastery ====================

    def prerequisite_mastery(self, topic: str, mastery: Mapping[str, float],
                             default: float = DEFAULT_MASTERY,
                             transitive: bool = False) -> Dict[str, float]:
        """
        Mastery of each prerequisite of topic.

        Unpracticed prerequisites get the default mastery.
        """
        prereqs = self.all_prerequisites(topic) if transitive else self.prerequisites(topic)
        return {p: mastery.get(p, default) for p in sorted(prereqs)}

    def learning_path(self, target: str, mastery: Mapping[str, float],
                      threshold: float = 0.6, default: float = DEFAULT_MASTERY) -> List[str]:
        """
        Ordered list of topics to learn before (and including) target.

        Only includes topics with mastery below threshold.
        """
        if target not in self.graph:
            return []

        candidates = self.all_prerequisites(target) | {target}
        weak = {t for t in candidates if mastery.get(t, default) < threshold}

        return [t for t in nx.topological_sort(self.graph) if t in weak]
