import csv
import json

from player_scraper.incremental_writer import (
    CsvSink,
    IncrementalWriter,
    JsonLinesSink,
    RewriteDocumentStore,
    read_csv_ids,
)
from player_scraper.profile_scraper import CSV_COLUMNS
from player_scraper.resilience.status_store import StatusStore


def record(user_id, name="Erik Svensson"):
    return {
        'user_id': user_id,
        'name': name,
        'player_username': name.lower().replace(' ', '-'),
        'profile_link': f"https://site.test/player/{user_id}/x",
        'birthdate': "Feb 02, 2004",
        'latest_team_position': "#12",
        'relation': 'Brother: 9, "quoted"',
    }


def test_first_append_creates_wrapped_document(tmp_path):
    path = tmp_path / "players.json"
    store = RewriteDocumentStore(path)
    store.append({'user_id': 1})
    assert path.read_text(encoding='utf-8') == '{"recentlyUpdatedPlayers":[{"user_id":1}]}'


def test_document_stays_valid_json_across_appends(tmp_path):
    path = tmp_path / "players.json"
    store = RewriteDocumentStore(path)
    for i in range(5):
        store.append(record(i))
        data = json.loads(path.read_text(encoding='utf-8'))
        assert [r['user_id'] for r in data['recentlyUpdatedPlayers']] == list(range(i + 1))
    assert not (tmp_path / "players.json.tmp").exists()


def test_malformed_document_is_replaced(tmp_path):
    path = tmp_path / "players.json"
    path.write_text('{"recentlyUpdatedPlayers": [', encoding='utf-8')
    RewriteDocumentStore(path).append({'user_id': 3})
    assert json.loads(path.read_text()) == {'recentlyUpdatedPlayers': [{'user_id': 3}]}


def test_bare_array_document_is_accepted(tmp_path):
    path = tmp_path / "players.json"
    path.write_text('[{"user_id": 1}]', encoding='utf-8')
    RewriteDocumentStore(path).append({'user_id': 2})
    assert json.loads(path.read_text()) == {'recentlyUpdatedPlayers': [{'user_id': 1}, {'user_id': 2}]}


def test_jsonl_lines_carry_retrieval_time(tmp_path):
    path = tmp_path / "profiles.jsonl"
    sink = JsonLinesSink(path)
    sink.append(record(1))
    sink.append(record(2))
    lines = [json.loads(line) for line in path.read_text(encoding='utf-8').splitlines()]
    assert [line['user_id'] for line in lines] == [1, 2]
    assert all('retrieved_at' in line for line in lines)


def test_csv_header_written_once_and_fields_quoted(tmp_path):
    path = tmp_path / "output.csv"
    sink = CsvSink(path)
    sink.append(record(1))
    sink.append(record(2, name="Lars, Jr"))

    with open(path, encoding='utf-8', newline='') as f:
        rows = list(csv.reader(f))
    assert rows[0] == CSV_COLUMNS
    assert len(rows) == 3
    assert rows[2][2] == "Lars, Jr"
    assert rows[1][CSV_COLUMNS.index("Relation")] == 'Brother: 9, "quoted"'
    assert read_csv_ids(path) == ["1", "2"]


def test_writer_marks_record_done_and_writes_all_sinks(paths):
    status = StatusStore(paths.status_file)
    status.load()
    writer = IncrementalWriter.for_extraction(paths, status)

    assert writer.append_record(record(5), "5")
    assert status.is_record_done("5")
    assert paths.profiles_jsonl.exists()
    assert paths.output_csv.exists()
    assert json.loads(paths.players_data_json.read_text())['recentlyUpdatedPlayers'][0]['user_id'] == 5


def test_retrieval_time_stays_out_of_the_upload_document(paths):
    status = StatusStore(paths.status_file)
    status.load()
    writer = IncrementalWriter.for_extraction(paths, status)
    writer.append_record(record(6), "6")

    assert 'retrieved_at' in json.loads(paths.profiles_jsonl.read_text().splitlines()[0])
    stored = json.loads(paths.players_data_json.read_text())['recentlyUpdatedPlayers'][0]
    assert 'retrieved_at' not in stored
    with open(paths.output_csv, newline='', encoding='utf-8') as f:
        assert 'retrieved_at' not in next(csv.reader(f))


class BrokenSink:
    name = "broken"

    def append(self, record):
        raise OSError("disk full")


class ListSink:
    name = "list"

    def __init__(self):
        self.items = []

    def append(self, record):
        self.items.append(record)


def test_one_failing_sink_does_not_block_the_others(tmp_path):
    status = StatusStore(tmp_path / "status.json")
    status.load()
    good = ListSink()
    writer = IncrementalWriter([BrokenSink(), good], status)

    assert writer.append_record(record(8), "8")
    assert good.items[0]['user_id'] == 8
    assert status.is_record_done("8")


def test_all_sinks_failing_leaves_record_pending(tmp_path):
    status = StatusStore(tmp_path / "status.json")
    status.load()
    writer = IncrementalWriter([BrokenSink()], status)

    assert writer.append_record(record(9), "9") is False
    assert not status.is_record_done("9")
