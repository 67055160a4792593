"""Tests for the turmite grid simulation."""

import pytest

from turmite_discovery.config import SPAWN_STRATEGIES
from turmite_discovery.presets import LANGTONS_ANT, PRESETS
from turmite_discovery.simulation import (
    SimulationContractError,
    TurmiteSimulation,
    check_simulation_contract,
    spawn_geometry,
)


class TestTurmiteSimulation:
    def test_langtons_first_step(self):
        sim = TurmiteSimulation(20, 10, PRESETS[LANGTONS_ANT].rules)
        agent = sim.add_agent(10, 5, facing=0)
        sim.update()
        assert sim.grid[5, 10] == 1
        assert agent.facing == 1
        assert (agent.x, agent.y) == (11, 5)
        assert sim.step_count == 1

    def test_wraps_around(self):
        sim = TurmiteSimulation(8, 8, PRESETS[LANGTONS_ANT].rules)
        agent = sim.add_agent(7, 0, facing=0)
        sim.update()
        assert (agent.x, agent.y) == (0, 0)

    def test_langtons_ant_keeps_painting(self):
        sim = TurmiteSimulation(64, 64, PRESETS[LANGTONS_ANT].rules)
        sim.add_agent(32, 32)
        sim.update(500)
        assert sim.painted_cells() > 20

    def test_reset(self):
        sim = TurmiteSimulation(8, 8, PRESETS[LANGTONS_ANT].rules)
        sim.add_agent(4, 4)
        sim.update(10)
        sim.reset()
        assert sim.painted_cells() == 0
        assert sim.agents == []
        assert sim.step_count == 0

    def test_undefined_cell_idles(self):
        sim = TurmiteSimulation(8, 8, PRESETS[LANGTONS_ANT].rules)
        sim.grid[4, 4] = 5
        agent = sim.add_agent(4, 4)
        sim.update(3)
        assert (agent.x, agent.y) == (4, 4)


class TestContract:
    def test_real_simulation_passes(self):
        check_simulation_contract(TurmiteSimulation(8, 8))

    def test_missing_methods(self):
        class Partial:
            grid = []

            def set_rules(self, rules):
                pass

        with pytest.raises(SimulationContractError, match="update"):
            check_simulation_contract(Partial())

    def test_missing_grid(self):
        class NoGrid:
            def set_rules(self, rules):
                pass

            def update(self, steps=1):
                pass

            def add_agent(self, x, y, facing=0):
                pass

        with pytest.raises(SimulationContractError):
            check_simulation_contract(NoGrid())


class TestSpawnGeometry:
    @pytest.mark.parametrize("strategy", SPAWN_STRATEGIES)
    def test_positions_in_bounds(self, strategy):
        for total in (1, 4, 9):
            for i in range(total):
                pos = spawn_geometry(strategy, i, total, 240, 150)
                assert 0 <= pos["x"] < 240
                assert 0 <= pos["y"] < 150

    def test_center(self):
        assert spawn_geometry("center", 0, 4, 240, 150) == {"x": 120, "y": 75}
        assert spawn_geometry("no-such-arrangement", 2, 4, 240, 150) == {"x": 120, "y": 75}

    def test_corners_are_distinct(self):
        spots = {tuple(spawn_geometry("corners", i, 4, 240, 150).values()) for i in range(4)}
        assert len(spots) == 4
