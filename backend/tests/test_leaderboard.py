from basecanvas.services.canvas.leaderboard import Leaderboard


def _record(board, actor, times):
    for _ in range(times):
        board.record_mutation(actor)


def test_top_k_orders_by_count():
    board = Leaderboard()
    _record(board, 'C', 3)
    _record(board, 'A', 5)
    _record(board, 'B', 5)
    top = board.top_k(10)
    assert [e['address'] for e in top] == ['A', 'B', 'C']
    assert [e['score'] for e in top] == [5, 5, 3]


def test_tie_goes_to_whoever_reached_the_count_first():
    board = Leaderboard()
    # B is seen first, but A records its 5th paint before B does
    _record(board, 'B', 4)
    _record(board, 'A', 5)
    board.record_mutation('B')
    _record(board, 'C', 3)
    assert [e['address'] for e in board.top_k(10)] == ['A', 'B', 'C']


def test_top_k_truncates():
    board = Leaderboard()
    for i in range(15):
        board.record_mutation(f'actor{i}')
    assert len(board.top_k(10)) == 10
    assert board.top_k(10)[0]['address'] == 'actor0'


def test_counts_round_trip_keeps_ranking():
    board = Leaderboard()
    _record(board, 'B', 4)
    _record(board, 'A', 5)
    board.record_mutation('B')
    restored = Leaderboard()
    restored.load(board.counts())
    assert restored.top_k() == board.top_k()


def test_load_skips_bad_entries():
    board = Leaderboard()
    board.load({'A': 2, 'B': 'x', 'C': 0})
    assert board.top_k() == [{'address': 'A', 'score': 2}]
