def _by_name(events):
    out = {}
    for pkt in events:
        out.setdefault(pkt['name'], []).append(pkt['args'])
    return out


def test_socket_connect_receives_catch_up(sio_client):
    assert sio_client.is_connected('/ws')
    received = _by_name(sio_client.get_received('/ws'))
    assert received['init-grid'][0][0] == [0] * 100
    assert received['init-annotations'][0][0] == {}
    assert received['leaderboard-update'][0][0] == []
    assert 'spawn-airdrop' not in received


def test_connect_includes_active_airdrop_and_annotations(flask_app, service, oracle, client):
    from basecanvas import socketio as _sio

    oracle.confirm('r1')
    client.post('/api/paint', json={'paymentRef': 'r1', 'cellIndex': 3, 'actor': 'X', 'annotation': 'hi'})
    instance = service.airdrops.try_spawn()

    viewer = _sio.test_client(flask_app, namespace='/ws')
    received = _by_name(viewer.get_received('/ws'))
    grid = received['init-grid'][0][0]
    assert grid[3] == 1 and sum(grid) == 1
    assert received['init-annotations'][0][0] == {'3': 'hi'}
    assert received['leaderboard-update'][0][0] == [{'address': 'X', 'score': 1}]
    assert received['spawn-airdrop'][0][0]['id'] == instance.id
    viewer.disconnect(namespace='/ws')


def test_paint_broadcasts_tile_and_leaderboard(sio_client, client, oracle):
    sio_client.get_received('/ws')  # flush catch-up
    oracle.confirm('r1')
    client.post('/api/paint', json={'paymentRef': 'r1', 'cellIndex': 7, 'actor': 'X'})

    events = sio_client.get_received('/ws')
    names = [e['name'] for e in events]
    assert names == ['tile-painted', 'leaderboard-update']
    assert events[0]['args'][0] == {'index': 7, 'owner': 'X'}
    assert events[1]['args'][0] == [{'address': 'X', 'score': 1}]


def test_rejected_paint_broadcasts_nothing(sio_client, client, oracle):
    sio_client.get_received('/ws')
    oracle.fail('bad')
    client.post('/api/paint', json={'paymentRef': 'bad', 'cellIndex': 7, 'actor': 'X'})
    assert sio_client.get_received('/ws') == []


def test_airdrop_lifecycle_events(sio_client, service, tasks):
    sio_client.get_received('/ws')
    first = service.airdrops.try_spawn()
    tasks.run_all()  # expiry fires
    second = service.airdrops.try_spawn()
    service.airdrops.claim('X', second.id)

    events = sio_client.get_received('/ws')
    assert [e['name'] for e in events] == ['spawn-airdrop', 'airdrop-expired', 'spawn-airdrop', 'airdrop-claimed']
    assert events[1]['args'][0] == {'id': first.id}
    assert events[3]['args'][0] == {'id': second.id, 'actor': 'X'}


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)
