from scoring import PlayerPerformance, Position, position_category, score_player_performance


def test_position_codes_map_to_categories():
    assert position_category("CB") == Position.DEF
    assert position_category("rwb") == Position.DEF
    assert position_category("AM") == Position.MID
    assert position_category("ST") == Position.FWD
    assert position_category("GK") == Position.GK
    assert position_category("FWD") == Position.FWD


def test_unknown_position_counts_as_midfielder():
    assert position_category("SW") == Position.MID
    assert position_category(None) == Position.MID


def test_forward_goal_in_win():
    perf = PlayerPerformance(goals=1, started=True)
    # appearance 2 + goal 4 + win 3, no forward clean sheet bonus
    assert score_player_performance(perf, Position.FWD, conceded_goals=0, started=True, team_outcome="win") == 9


def test_midfielder_assist_with_clean_sheet():
    perf = PlayerPerformance(assists=1, started=True)
    assert score_player_performance(perf, Position.MID, conceded_goals=0, started=True, team_outcome="win") == 9


def test_defender_clean_sheet():
    perf = PlayerPerformance(started=True)
    assert score_player_performance(perf, Position.DEF, conceded_goals=0, started=True, team_outcome="win") == 9
    assert score_player_performance(perf, Position.DEF, conceded_goals=1, started=True, team_outcome="loss") == 3


def test_goal_value_by_position():
    perf = PlayerPerformance(goals=2)
    assert score_player_performance(perf, Position.GK) == 12
    assert score_player_performance(perf, Position.DEF) == 12
    assert score_player_performance(perf, Position.MID) == 10
    assert score_player_performance(perf, Position.FWD) == 8


def test_dismissal_takes_red_penalty_only():
    perf = PlayerPerformance(yellow_cards=2, red_card=True, started=True)
    # 2 appearance - 3 red + 1 loss
    assert score_player_performance(perf, Position.MID, conceded_goals=2, started=True, team_outcome="loss") == 0


def test_single_yellow():
    perf = PlayerPerformance(yellow_cards=1, started=True)
    assert score_player_performance(perf, Position.FWD, conceded_goals=1, started=True, team_outcome="draw") == 3


def test_substitute_gets_no_clean_sheet():
    perf = PlayerPerformance(subbed_on=True)
    assert score_player_performance(perf, Position.GK, conceded_goals=0, subbed_on=True, team_outcome="draw") == 3


def test_unused_player_gets_nothing_from_the_result():
    perf = PlayerPerformance()
    assert score_player_performance(perf, Position.DEF, conceded_goals=0, team_outcome="win") == 0


def test_man_of_the_match():
    perf = PlayerPerformance(man_of_the_match=True, started=True)
    assert score_player_performance(perf, Position.MID, conceded_goals=3, started=True) == 5


def test_scoring_is_pure():
    perf = PlayerPerformance(goals=1, assists=2, yellow_cards=1, started=True)
    first = score_player_performance(perf, Position.MID, conceded_goals=0, started=True, team_outcome="draw")
    second = score_player_performance(perf, Position.MID, conceded_goals=0, started=True, team_outcome="draw")
    assert first == second
    assert perf == PlayerPerformance(goals=1, assists=2, yellow_cards=1, started=True)
