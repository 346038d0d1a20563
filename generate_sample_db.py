#!/usr/bin/env python3
"""
Generate a sample database with a realistic hierarchy for trying out treenode.
This script will replace treenode.db with a new database containing:
- Several department roots
- Teams, projects and sub-projects nested under them
- A few nodes moved and renamed after creation

Uses the hierarchy engine itself, so every uniqueness and cycle check applies.
"""

import os
import random
from pathlib import Path

from treenode.services.hierarchy import HierarchyEngine
from treenode.services.persistence import NodeStore

# Database path
DB_PATH = Path(__file__).parent / "treenode.db"

DEPARTMENTS = ["Engineering", "Research", "Operations", "Sales"]

TEAMS = [
    "Platform",
    "Data",
    "Infrastructure",
    "Mobile",
    "Security",
    "Analytics",
    "Support",
    "Partnerships",
]

PROJECTS = ["Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta"]


def generate_department(engine: HierarchyEngine, department: str, rng: random.Random) -> int:
    """Create one department root with teams and projects below it. Returns the node count."""
    root = engine.create_node(department)
    created = 1

    for team in rng.sample(TEAMS, k=rng.randint(2, 4)):
        team_node = engine.create_node(team, root.id)
        created += 1

        for project in rng.sample(PROJECTS, k=rng.randint(1, 3)):
            project_node = engine.create_node(project, team_node.id)
            created += 1

            # Sub-projects (sometimes)
            if rng.random() > 0.5:
                for phase in range(1, rng.randint(2, 4)):
                    engine.create_node(f"Phase {phase}", project_node.id)
                    created += 1

    return created


def reshuffle(engine: HierarchyEngine, rng: random.Random) -> int:
    """Move a few teams between departments. Returns the number of successful moves."""
    roots = engine.get_roots()
    moves = 0
    for root in roots:
        subtree = engine.get_node(root.id)
        if not subtree.children:
            continue
        team = rng.choice(subtree.children)
        target = rng.choice(roots)
        if target.id == root.id:
            continue
        if any(child.name == team.name for child in engine.get_node(target.id).children):
            continue
        engine.move_node(team.id, target.id)
        moves += 1
    return moves


def populate(store: NodeStore, seed: int = 0) -> int:
    """Fill an empty store with sample data. Returns the total node count."""
    rng = random.Random(seed)
    engine = HierarchyEngine(store)
    total = 0
    for department in DEPARTMENTS:
        count = generate_department(engine, department, rng)
        print(f"✓ Added {department} with {count} nodes")
        total += count

    moves = reshuffle(engine, rng)
    print(f"✓ Moved {moves} teams between departments")
    return total


def main():
    """Main function to generate the sample database."""
    print("🌲 Generating sample database for treenode...")
    print()

    # Remove existing database
    if DB_PATH.exists():
        os.remove(DB_PATH)
        print(f"✓ Removed existing database at {DB_PATH}")

    store = NodeStore(str(DB_PATH))
    print(f"✓ Created new database at {DB_PATH}")
    print()

    try:
        total = populate(store)
        snapshot = HierarchyEngine(store).export_tree()

        print()
        print("✅ Sample database generated successfully!")
        print()
        print("Summary:")
        print(f"  • {len(snapshot.roots)} roots")
        print(f"  • {total} nodes created, {snapshot.total_nodes} exported, {store.count_nodes()} stored")
        print()
        print("You can now run the application with: python3 run.py")
    finally:
        store.close()


if __name__ == "__main__":
    main()
