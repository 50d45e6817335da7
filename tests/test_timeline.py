from backend.time_utils import time_to_position
from backend.timeline import CURRENT_DAY_ROAD_ID, build_road, build_road_system, time_for_drop


TASKS = [
    {'id': 3, 'title': 'Dinner', 'time': '18:00'},
    {'id': 1, 'title': 'Breakfast', 'time': '08:00'},
    {'id': 2, 'title': 'Lunch', 'time': '12:00'},
]


def test_road_places_tasks_in_time_order():
    road = build_road(CURRENT_DAY_ROAD_ID, "Today's Route", TASKS, "13:00", is_current_day=True)
    assert [t['title'] for t in road['tasks']] == ['Breakfast', 'Lunch', 'Dinner']
    assert road['tasks'][1]['position'] == 50
    assert road['current_task']['title'] == 'Lunch'
    assert road['next_task']['title'] == 'Dinner'
    assert road['now_position'] == time_to_position('13:00')
    assert road['van_position'] == road['now_position']
    assert len(road['time_scale']) == 12
    assert len(road['hour_markers']) == 24


def test_goal_roads_have_no_van():
    road = build_road(7, 'Get Fit', TASKS, "07:00")
    assert road['van_position'] is None
    assert road['current_task'] is None
    assert road['next_task']['title'] == 'Breakfast'


def test_road_does_not_mutate_input_tasks():
    build_road(1, 'Road', TASKS, "09:00")
    assert 'position' not in TASKS[0]


def test_road_system_shares_now_between_roads():
    system = build_road_system(TASKS, [(5, 'Learn Spanish', TASKS[:1]), (6, 'Empty', [])], "19:00")
    assert system['current_day']['id'] == CURRENT_DAY_ROAD_ID
    assert system['current_day']['is_current_day'] is True
    assert [r['id'] for r in system['goal_roads']] == [5, 6]
    assert system['goal_roads'][0]['current_task']['title'] == 'Dinner'
    assert system['goal_roads'][1]['tasks'] == []
    positions = {system['current_day']['now_position']} | {r['now_position'] for r in system['goal_roads']}
    assert positions == {time_to_position('19:00')}


def test_time_for_drop():
    assert time_for_drop(50) == '12:00'
    assert time_for_drop('25') == '06:00'
    assert time_for_drop(-10) == '00:00'
    assert time_for_drop(100) == '23:59'
