"""Migration 002: person table"""

TABLE = "person"


def up(client, dataset_id):
    client.execute_script(
        f'CREATE TABLE {client.qualified_name(dataset_id, TABLE)} (name VARCHAR, age INTEGER)'
    )


def down(client, dataset_id):
    client.execute_script(f'DROP TABLE IF EXISTS {client.qualified_name(dataset_id, TABLE)}')
