"""Connect a bridge to a running listener, send a few events, then disconnect.

Start the listener first:  python -m voiceagent_bridge.listener
Run:                       python scripts/client_harness.py [ws://127.0.0.1:8080/ws]
"""
import sys

import httpx

from voiceagent_bridge import BridgeConfig, GameEventTracker, VoiceAgentBridge

URL = sys.argv[1] if len(sys.argv) > 1 else "ws://127.0.0.1:8080/ws"
BASE = URL.replace("ws://", "http://", 1).rsplit("/ws", 1)[0]


def run():
    bridge = VoiceAgentBridge(BridgeConfig(agent_url=URL, debug_mode=True))
    bridge.on_error.subscribe(lambda err: print("error:", err))
    bridge.on_closed.subscribe(lambda info: print("closed:", info.code, info.reason))
    tracker = GameEventTracker(bridge)

    bridge.connect()
    if not bridge.dispatcher.run_until(lambda: bridge.is_connected, timeout=5.0):
        print("could not connect to", URL)
        return

    tracker.track_level_start("Tutorial")
    tracker.track_player_action("jump", position=(1.0, 0.0, 2.5), intensity=0.8)
    tracker.track_level_complete("Tutorial", time_taken=45.5, score=1000, perfect_clear=True)
    tracker.track_custom_event("BossDefeated", {"boss": "Golem", "hits": 12})

    bridge.disconnect()
    bridge.dispatcher.run_until(lambda: not bridge.is_connected, timeout=5.0)

    r = httpx.get(f"{BASE}/events")
    for item in r.json()["events"]:
        print(item["type"], item["payload"])


if __name__ == "__main__":
    run()
