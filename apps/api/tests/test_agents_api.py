#!/usr/bin/env python3

from __future__ import annotations

import os
import random
import unittest

from fastapi.testclient import TestClient

from apps.api.npcsync_api.main import create_app
from apps.api.tests.fakes import FakeClock, FakeSyncClient, http_error, make_status
from packages.npcsync_core.agent.mover import KinematicMover
from packages.npcsync_core.agent.runtime import NpcAgent, Scene
from packages.npcsync_core.sync.client import SyncResult
from packages.npcsync_core.world.locations import LocationRegistry, Vec3


WAYPOINTS = [Vec3(float(5 * (i + 1)), 0.0, 0.0) for i in range(6)]


class AgentsApiTests(unittest.TestCase):
    def setUp(self) -> None:
        os.environ.pop("NPCSYNC_AUTOSTART_SCENE", None)
        self.sync = FakeSyncClient()
        self.clock = FakeClock()
        self.scene = Scene(self.sync, name="campus", location_sync_delay_seconds=30.0)
        self.agent = self.scene.add_agent(
            NpcAgent(
                "seoa",
                client=self.sync,
                registry=LocationRegistry(WAYPOINTS, spawn=Vec3(), rng=random.Random(2)),
                mover=KinematicMover(Vec3(), clock=self.clock),
                name="이서아",
            )
        )
        self.client = TestClient(create_app(self.scene))

    def tearDown(self) -> None:
        self.scene.stop()

    def test_healthz_reports_scene(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok", "scene": "campus", "running": False})

    def test_healthz_without_scene_is_unavailable(self) -> None:
        resp = TestClient(create_app()).get("/healthz")
        self.assertEqual(resp.status_code, 503)

    def test_list_and_get_agent(self) -> None:
        listed = self.client.get("/api/v1/agents")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.json()["count"], 1)
        self.assertEqual(listed.json()["agents"][0]["npc_id"], "seoa")

        one = self.client.get("/api/v1/agents/seoa")
        self.assertEqual(one.status_code, 200)
        agent = one.json()["agent"]
        self.assertEqual(agent["name"], "이서아")
        self.assertIsNone(agent["status"])
        self.assertEqual(agent["conversation_state"], "idle")
        self.assertTrue(agent["status_ui_visible"])

    def test_unknown_agent_is_404(self) -> None:
        self.assertEqual(self.client.get("/api/v1/agents/nobody").status_code, 404)
        self.assertEqual(self.client.get("/api/v1/agents/nobody/status").status_code, 404)
        resp = self.client.post("/api/v1/agents/nobody/conversation", json={"open": True})
        self.assertEqual(resp.status_code, 404)

    def test_status_and_moving_after_cycle(self) -> None:
        self.sync.queue_status(SyncResult.success(make_status("카페:휴게실", action="커피 마시기", emoji="☕")))
        self.agent.run_behavior_cycle()

        status = self.client.get("/api/v1/agents/seoa/status").json()
        self.assertEqual(status["status"]["location"], "카페:휴게실")
        self.assertEqual(status["status_line"], "☕ 커피 마시기")

        moving = self.client.get("/api/v1/agents/seoa/moving").json()
        self.assertTrue(moving["is_moving"])
        self.assertEqual(moving["target"]["target"], [20.0, 0.0, 0.0])

        self.clock.advance(30.0)
        self.agent.tick()
        arrivals = self.client.get("/api/v1/agents/seoa/arrivals").json()
        self.assertEqual(arrivals["count"], 1)
        self.assertEqual(arrivals["arrivals"][0]["location"], "카페:휴게실")
        self.assertFalse(self.client.get("/api/v1/agents/seoa/moving").json()["is_moving"])

    def test_locations_are_sorted(self) -> None:
        resp = self.client.get("/api/v1/agents/seoa/locations").json()
        self.assertEqual(resp["count"], 6)
        self.assertEqual(resp["locations"], sorted(resp["locations"]))
        self.assertEqual(resp["points"]["도서관:열람실"], [15.0, 0.0, 0.0])

    def test_autonomy_toggle(self) -> None:
        resp = self.client.put("/api/v1/agents/seoa/autonomy", json={"enabled": False})
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["autonomous"])
        self.assertTrue(self.agent.mover.is_suspended)

        resp = self.client.put("/api/v1/agents/seoa/autonomy", json={"enabled": True})
        self.assertTrue(resp.json()["autonomous"])
        self.assertFalse(self.agent.mover.is_suspended)

    def test_conversation_open_and_close(self) -> None:
        opened = self.client.post("/api/v1/agents/seoa/conversation", json={"open": True})
        self.assertEqual(opened.status_code, 200)
        self.assertEqual(opened.json()["conversation_state"], "talking")
        self.assertFalse(opened.json()["queued"])
        self.assertFalse(self.client.get("/api/v1/agents/seoa").json()["agent"]["status_ui_visible"])

        closed = self.client.post("/api/v1/agents/seoa/conversation", json={"open": False})
        self.assertEqual(closed.json()["conversation_state"], "idle")
        self.agent.notifier.join()
        self.assertEqual(self.sync.end_calls, ["seoa"])

    def test_chat_success_and_upstream_failure(self) -> None:
        ok = self.client.post(
            "/api/v1/agents/seoa/chat",
            json={"player_message": "오늘 뭐 해?", "player_name": "민준"},
        )
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["reply"]["npc_response"], "안녕, 민준!")
        self.assertEqual(self.sync.chat_calls, [("seoa", "오늘 뭐 해?", "민준")])

        self.sync.chat_result = http_error(500)
        failed = self.client.post("/api/v1/agents/seoa/chat", json={"player_message": "hi"})
        self.assertEqual(failed.status_code, 502)
        self.assertEqual(failed.json()["detail"]["error_code"], "http_500")
        self.assertEqual(failed.json()["detail"]["error_kind"], "http_status")

    def test_chat_requires_message(self) -> None:
        resp = self.client.post("/api/v1/agents/seoa/chat", json={"player_message": ""})
        self.assertEqual(resp.status_code, 422)


class SceneApiTests(unittest.TestCase):
    def setUp(self) -> None:
        os.environ.pop("NPCSYNC_AUTOSTART_SCENE", None)
        self.sync = FakeSyncClient()
        self.scene = Scene(self.sync, name="campus", location_sync_delay_seconds=30.0)
        self.client = TestClient(create_app(self.scene))

    def tearDown(self) -> None:
        self.scene.stop()

    def _add_agent(self, npc_id: str, waypoints: list[Vec3]) -> None:
        self.scene.add_agent(
            NpcAgent(
                npc_id,
                client=self.sync,
                registry=LocationRegistry(waypoints, spawn=Vec3()),
                mover=KinematicMover(Vec3(), clock=FakeClock()),
            )
        )

    def test_location_sync_with_empty_scene(self) -> None:
        resp = self.client.post("/api/v1/scene/locations/sync")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["ok"])
        self.assertEqual(self.sync.registered, [])

    def test_location_sync_registers_union(self) -> None:
        self._add_agent("seoa", WAYPOINTS)
        self._add_agent("minjun", WAYPOINTS[:1])

        listed = self.client.get("/api/v1/scene/locations").json()
        self.assertEqual(listed["count"], 7)

        resp = self.client.post("/api/v1/scene/locations/sync")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["sent"], listed["locations"])
        self.assertEqual(self.sync.registered, [listed["locations"]])

    def test_location_sync_failure_is_502(self) -> None:
        self._add_agent("seoa", WAYPOINTS)
        self.sync.register_result = http_error(503)
        resp = self.client.post("/api/v1/scene/locations/sync")
        self.assertEqual(resp.status_code, 502)

    def test_runtime_start_and_stop(self) -> None:
        self._add_agent("seoa", WAYPOINTS)

        started = self.client.post("/api/v1/scene/runtime/start")
        self.assertEqual(started.status_code, 200)
        self.assertTrue(started.json()["started"])
        self.assertTrue(started.json()["runtime"]["running"])
        self.assertFalse(self.client.post("/api/v1/scene/runtime/start").json()["started"])

        stopped = self.client.post("/api/v1/scene/runtime/stop")
        self.assertTrue(stopped.json()["stopped"])
        runtime = self.client.get("/api/v1/scene/runtime").json()
        self.assertFalse(runtime["running"])
        self.assertIsNone(runtime["registered_locations"])

    def test_remote_directory_passthrough(self) -> None:
        created = self.client.post(
            "/api/v1/npcs",
            json={"npc_id": "minjun", "name": "김민준", "persona": "체육교육과 3학년"},
        )
        self.assertEqual(created.status_code, 200)
        self.assertEqual(self.sync.created, [("minjun", "김민준", "체육교육과 3학년")])

        listed = self.client.get("/api/v1/npcs").json()
        self.assertEqual(listed["total_count"], 1)
        self.assertEqual(listed["npcs"][0]["npc_id"], "minjun")

    def test_scene_endpoints_without_scene_are_503(self) -> None:
        client = TestClient(create_app())
        self.assertEqual(client.get("/api/v1/scene/runtime").status_code, 503)
        self.assertEqual(client.get("/api/v1/agents").status_code, 503)

    def test_startup_with_injected_scene_does_not_autostart(self) -> None:
        with TestClient(create_app(self.scene)) as client:
            resp = client.get("/healthz")
            self.assertEqual(resp.status_code, 200)
            self.assertFalse(resp.json()["running"])


if __name__ == "__main__":
    unittest.main()
