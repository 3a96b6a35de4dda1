"""Migration 001: events table"""

TABLE = "events"


def up(client, dataset_id):
    client.execute_script(
        f'CREATE TABLE {client.qualified_name(dataset_id, TABLE)} ('
        'event_id BIGINT, event_type VARCHAR, occurred_at TIMESTAMP)'
    )


def down(client, dataset_id):
    client.execute_script(f'DROP TABLE IF EXISTS {client.qualified_name(dataset_id, TABLE)}')
