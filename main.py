"""
Main entry point for the Street Art CTF game engine.
Demonstrates core functionality with a simple simulated capture session.
"""

import time

from streetart.engine.actions import capture_art, discover_art, join_team, set_game_mode, set_player_name
from streetart.engine.definitions import load_catalog
from streetart.engine.queries import calculate_team_scores, find_nearest_art, player_stats
from streetart.engine.reducer import apply_action, capture
from streetart.engine.state import GameState
from streetart.engine.utils import initialize_game_state, print_game_state


def main():
    print("Street Art CTF - Game Engine Demo")
    print("=" * 60)

    catalog = load_catalog()
    state = initialize_game_state(catalog)
    player_id = state.player.id
    now = time.time()

    print(f"\nCatalog: {catalog.display_name} ({len(catalog.art)} pieces, {len(catalog.hoods)} hoods)")
    print_game_state(state, catalog)

    # ===== SCENARIO 1: Capture without a team =====
    print("\n[SCENARIO 1: Capture before joining a team]")
    first_art = next(iter(catalog.art))
    state, result, _ = capture(state, first_art, catalog, now=now)
    print(f"✗ {result.message}")

    # ===== SCENARIO 2: Join a team and capture =====
    print("\n[SCENARIO 2: Join red and capture]")
    state, events = apply_action(state, set_player_name(player_id, "Banksy_Fan"), catalog, now=now)
    state, events = apply_action(state, join_team(player_id, "red"), catalog, now=now)
    print(f"  Events: {[e.type for e in events]}")

    art_ids = list(catalog.art)
    for i, art_id in enumerate(art_ids[:3]):
        location = catalog.art[art_id].location
        state, result, events = capture(state, art_id, catalog, location=location, now=now + i * 120)
        if result.success:
            bonus_text = ", ".join(f"{b['label']} +{b['points']}" for b in result.bonuses) or "no bonuses"
            print(f"✓ {result.art.name}: +{result.points} ({result.base_points} base; {bonus_text})")
        else:
            print(f"✗ {art_id}: {result.message}")
        for e in events:
            if e.type == "achievement_unlocked":
                print(f"  🏆 {e.payload['name']}")

    # ===== SCENARIO 3: Already yours =====
    print("\n[SCENARIO 3: Capture a piece we already own]")
    state, result, _ = capture(state, art_ids[0], catalog, now=now + 600)
    print(f"✗ {result.message}")

    # ===== SCENARIO 4: Steal from the other team =====
    print("\n[SCENARIO 4: Blue steals a red piece]")
    blue = GameState.from_dict(state.to_dict())
    blue.player = initialize_game_state(catalog).player
    blue, _ = apply_action(blue, join_team(blue.player.id, "blue"), catalog, now=now)
    blue, result, _ = capture(blue, art_ids[1], catalog, now=now + 900)
    print(f"✓ {result.message} +{result.points}" if result.success else f"✗ {result.message}")
    print(f"  Team scores (blue's view): {calculate_team_scores(blue.art_points.values(), catalog.teams, catalog.sizes)}")

    # ===== SCENARIO 5: Solo mode discovery =====
    print("\n[SCENARIO 5: Solo mode]")
    state, _ = apply_action(state, set_game_mode(player_id, "solo"), catalog, now=now)
    for art_id in art_ids[5:8]:
        try:
            state, _ = apply_action(state, discover_art(player_id, art_id), catalog, now=now + 1200)
            print(f"✓ Discovered {catalog.art[art_id].name}")
        except ValueError as e:
            print(f"✗ {art_id}: {e}")
    try:
        apply_action(state, discover_art(player_id, art_ids[5]), catalog, now=now + 1300)
    except ValueError as e:
        print(f"✗ {art_ids[5]}: {e}")

    # ===== SCENARIO 6: Nearest art to a scan location =====
    print("\n[SCENARIO 6: Scan near a piece]")
    lat, lng = catalog.art[art_ids[10]].location
    nearest = find_nearest_art(state.art_points.values(), lat + 0.0002, lng, max_distance_m=100)
    if nearest:
        art, dist = nearest
        print(f"  Nearest: {art.name} ({dist} m)")
        try:
            state, _ = apply_action(state, capture_art(player_id, art.id, (lat + 0.0002, lng)), catalog, now=now + 1500)
            print(f"✓ Captured {art.name}")
        except ValueError as e:
            print(f"✗ {e}")

    print("\n[FINAL STATE]")
    print_game_state(state, catalog)
    print(f"Stats: {player_stats(state.player)}")


if __name__ == "__main__":
    main()
