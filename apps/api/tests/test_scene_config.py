#!/usr/bin/env python3

from __future__ import annotations

from pathlib import Path
import json
import os
import tempfile
import unittest

from apps.api.tests.fakes import FakeClock, FakeSyncClient
from packages.npcsync_core.agent.mover import KinematicMover
from packages.npcsync_core.agent.runtime import build_scene
from packages.npcsync_core.world.locations import DEFAULT_LOCATION_NAMES, Vec3
from packages.npcsync_core.world.scene_config import SceneConfigError, load_scene, parse_scene


ROOT = Path(__file__).resolve().parents[3]
CAMPUS_SCENE = ROOT / "assets" / "scenes" / "campus.json"


class SceneConfigTests(unittest.TestCase):
    def test_campus_scene_loads(self) -> None:
        config = load_scene(CAMPUS_SCENE)

        self.assertEqual(config.name, "campus")
        self.assertEqual(len(config.agents), 1)
        agent = config.agents[0]
        self.assertEqual(agent.npc_id, "seoa")
        self.assertEqual(agent.location_names, list(DEFAULT_LOCATION_NAMES))
        self.assertEqual(agent.waypoint_points()[2], Vec3(14.0, 0.0, 6.0))
        self.assertEqual(agent.spawn_point(), Vec3())

    def test_defaults_are_applied(self) -> None:
        config = parse_scene({"agents": [{"npc_id": "minjun"}]})
        agent = config.agents[0]
        self.assertEqual(agent.arrival_distance, 2.0)
        self.assertEqual(agent.movement_speed, 2.0)
        self.assertEqual(agent.status_update_interval, 30.0)
        self.assertTrue(agent.autonomous)
        self.assertIsNone(config.location_sync_delay_seconds)

    def test_duplicate_npc_ids_are_rejected(self) -> None:
        with self.assertRaises(SceneConfigError):
            parse_scene({"agents": [{"npc_id": "seoa"}, {"npc_id": "seoa"}]})

    def test_duplicate_location_names_are_rejected(self) -> None:
        with self.assertRaises(SceneConfigError):
            parse_scene({"agents": [{"npc_id": "seoa", "location_names": ["집:침실", "집:침실"]}]})

    def test_malformed_spawn_is_rejected(self) -> None:
        with self.assertRaises(SceneConfigError):
            parse_scene({"agents": [{"npc_id": "seoa", "spawn": [1, 2]}]})

    def test_malformed_waypoint_is_rejected(self) -> None:
        with self.assertRaises(SceneConfigError):
            parse_scene({"agents": [{"npc_id": "seoa", "waypoints": [[1, 2, 3], [4]]}]})

    def test_non_positive_arrival_distance_is_rejected(self) -> None:
        with self.assertRaises(SceneConfigError):
            parse_scene({"agents": [{"npc_id": "seoa", "arrival_distance": 0}]})

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(SceneConfigError):
            load_scene(ROOT / "assets" / "scenes" / "does-not-exist.json")

    def test_invalid_json_and_non_object_raise(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            broken = Path(tmp) / "broken.json"
            broken.write_text("{ nope", encoding="utf-8")
            with self.assertRaises(SceneConfigError):
                load_scene(broken)

            listing = Path(tmp) / "list.json"
            listing.write_text(json.dumps([{"npc_id": "seoa"}]), encoding="utf-8")
            with self.assertRaises(SceneConfigError):
                load_scene(listing)

    def test_build_scene_wires_agents(self) -> None:
        config = load_scene(CAMPUS_SCENE)
        client = FakeSyncClient()
        clock = FakeClock()

        scene = build_scene(
            config,
            client,
            mover_factory=lambda agent: KinematicMover(agent.spawn_point(), speed=agent.movement_speed, clock=clock),
            location_sync_delay_seconds=0.5,
        )

        self.assertEqual(scene.name, "campus")
        agent = scene.get_agent("seoa")
        self.assertIsNotNone(agent)
        self.assertEqual(agent.name, "이서아")
        self.assertEqual(agent.get_location_names(), set(DEFAULT_LOCATION_NAMES))
        self.assertEqual(agent.behavior.interval_seconds, 30.0)
        self.assertFalse(agent.mover.is_suspended)


class SceneFromEnvTests(unittest.TestCase):
    _env_keys = ("NPCSYNC_SCENE_PATH", "NPCSYNC_STATUS_INTERVAL_SECONDS", "NPCSYNC_LOCATION_SYNC_DELAY_SECONDS")

    def setUp(self) -> None:
        self._env_backup = {k: os.environ.get(k) for k in self._env_keys}

    def tearDown(self) -> None:
        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def test_scene_path_and_interval_come_from_env(self) -> None:
        from apps.api.npcsync_api.services.scene_runtime import build_scene_from_env

        os.environ["NPCSYNC_SCENE_PATH"] = "assets/scenes/campus.json"
        os.environ["NPCSYNC_STATUS_INTERVAL_SECONDS"] = "5"
        os.environ["NPCSYNC_LOCATION_SYNC_DELAY_SECONDS"] = "not-a-number"

        scene = build_scene_from_env(client=FakeSyncClient())

        self.assertEqual(scene.name, "campus")
        self.assertEqual(scene.get_agent("seoa").behavior.interval_seconds, 5.0)

    def test_missing_scene_file_from_env_raises(self) -> None:
        from apps.api.npcsync_api.services.scene_runtime import build_scene_from_env

        os.environ["NPCSYNC_SCENE_PATH"] = "assets/scenes/missing.json"
        with self.assertRaises(SceneConfigError):
            build_scene_from_env(client=FakeSyncClient())


if __name__ == "__main__":
    unittest.main()
