from unittest.mock import MagicMock


def make_mock_conn():
    """A connection/cursor pair that works with `with get_db() as conn` and `with conn.cursor() as cur`."""
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


def statements(cursor):
    """Every SQL statement the mocked cursor ran, whitespace-collapsed."""
    return [" ".join(c.args[0].split()) for c in cursor.execute.call_args_list]
