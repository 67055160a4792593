"""Turmite grid simulation used to test-drive candidate rule tables."""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .tables import RuleTable

# Facing: 0=N, 1=E, 2=S, 3=W
DX = (0, 1, 0, -1)
DY = (-1, 0, 1, 0)

REQUIRED_METHODS = ("set_rules", "update", "add_agent")


class SimulationContractError(TypeError):
    """The simulation collaborator lacks the minimal construct/set_rules/update contract."""


@dataclass
class Agent:
    x: int
    y: int
    facing: int
    state: int = 0


class TurmiteSimulation:
    """Turmites on a toroidal grid of color ids."""

    def __init__(self, width: int = 240, height: int = 150, rules: Optional[RuleTable] = None):
        self.width = width
        self.height = height
        self.grid = np.zeros((height, width), dtype=np.uint8)
        self.agents: List[Agent] = []
        self.step_count = 0
        self._lookup: Dict = {}
        if rules is not None:
            self.set_rules(rules)

    def set_rules(self, rules: RuleTable):
        """Install a table. Cells the table doesn't define leave agents idle."""
        self.rules = rules
        self._lookup = {
            (s, c): (r.write, int(r.turn), r.next_state)
            for s, c, r in rules.cells()
        }

    def reset(self):
        """Clear the grid, agents and step counter."""
        self.grid.fill(0)
        self.agents = []
        self.step_count = 0

    def clear_agents(self):
        self.agents = []

    def add_agent(self, x: int, y: int, facing: int = 0) -> Agent:
        agent = Agent(x=x % self.width, y=y % self.height, facing=facing % 4)
        self.agents.append(agent)
        return agent

    def update(self, steps: int = 1):
        """Advance every agent `steps` times: read, write, change state, turn, move."""
        grid = self.grid
        lookup = self._lookup
        width, height = self.width, self.height

        for _ in range(steps):
            self.step_count += 1
            for agent in self.agents:
                key = (agent.state, int(grid[agent.y, agent.x]))
                rule = lookup.get(key)
                if rule is None:
                    continue
                write, turn, next_state = rule
                grid[agent.y, agent.x] = write
                agent.state = next_state
                agent.facing = (agent.facing + turn) % 4
                agent.x = (agent.x + DX[agent.facing]) % width
                agent.y = (agent.y + DY[agent.facing]) % height

    def painted_cells(self) -> int:
        """Count non-background cells."""
        return int(np.count_nonzero(self.grid))


def check_simulation_contract(sim) -> None:
    """Raise SimulationContractError if `sim` can't be driven by the validator."""
    missing = [name for name in REQUIRED_METHODS if not callable(getattr(sim, name, None))]
    if missing:
        raise SimulationContractError(
            f"{type(sim).__name__} is missing required simulation methods: {', '.join(missing)}"
        )
    if getattr(sim, "grid", None) is None:
        raise SimulationContractError(f"{type(sim).__name__} exposes no grid")


def spawn_geometry(strategy: str, index: int, total: int, width: int, height: int) -> Dict[str, int]:
    """Place agent `index` of `total` in a named arrangement around the grid center."""
    cx, cy = width // 2, height // 2

    def clamp_x(x):
        return max(2, min(width - 3, int(math.floor(x))))

    def clamp_y(y):
        return max(2, min(height - 3, int(math.floor(y))))

    if strategy == "line":
        offset = index - total // 2
        return {"x": clamp_x(cx + offset * 6), "y": cy}
    if strategy == "vertical":
        offset = index - total // 2
        return {"x": cx, "y": clamp_y(cy + offset * 6)}
    if strategy == "cross":
        leg, dist = index % 4, index // 4 + 1
        if leg == 0:
            return {"x": cx, "y": clamp_y(cy - dist * 6)}
        if leg == 1:
            return {"x": clamp_x(cx - dist * 6), "y": cy}
        if leg == 2:
            return {"x": cx, "y": clamp_y(cy + dist * 6)}
        return {"x": clamp_x(cx + dist * 6), "y": cy}
    if strategy == "diamond":
        ring, pos = index // 4 + 1, index % 4
        dx = ring if pos in (1, 2) else -ring
        dy = ring if pos >= 2 else -ring
        return {"x": clamp_x(cx + dx * 6), "y": clamp_y(cy + dy * 6)}
    if strategy == "ring":
        radius = min(width, height) * 0.15
        angle = index / max(1, total) * 2 * math.pi
        return {"x": clamp_x(cx + math.cos(angle) * radius), "y": clamp_y(cy + math.sin(angle) * radius)}
    if strategy == "grid3":
        col, row = index % 3, (index // 3) % 3
        return {"x": clamp_x(cx + (col - 1) * 8), "y": clamp_y(cy + (row - 1) * 8)}
    if strategy == "diagonal":
        offset = index - total // 2
        return {"x": clamp_x(cx + offset * 6), "y": clamp_y(cy + offset * 6)}
    if strategy == "corners":
        ix, iy = int(width * 0.3), int(height * 0.3)
        corners = ((ix, iy), (width - ix, iy), (width - ix, height - iy), (ix, height - iy))
        x, y = corners[index % 4]
        return {"x": clamp_x(x), "y": clamp_y(y)}
    # "center" and anything unknown
    return {"x": cx, "y": cy}
