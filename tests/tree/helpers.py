from __future__ import annotations

import itertools

from ia_tree import ConversationTree


def make_tree(prefix: str = "n") -> ConversationTree:
    counter = itertools.count(1)
    return ConversationTree(id_factory=lambda: f"{prefix}{next(counter)}", clock=lambda: 1000)


def chain(tree: ConversationTree, *texts: str) -> list[str]:
    """Build system -> user -> assistant -> user ... and return the ids."""
    ids = [tree.create_system_message(texts[0])]
    for index, text in enumerate(texts[1:]):
        if index % 2 == 0:
            ids.append(tree.create_user_after(ids[-1], text))
        else:
            assistant_id = tree.create_assistant_after(ids[-1])
            tree.append_to_node(assistant_id, content=text)
            tree.set_node_status(assistant_id, "final")
            ids.append(assistant_id)
    return ids


def state_of(tree: ConversationTree) -> tuple:
    return (
        {node_id: node.model_dump() for node_id, node in tree.nodes.items()},
        {edge_id: edge.model_dump() for edge_id, edge in tree.edges.items()},
        tree.roots,
        tree.active_target_id,
    )
