from __future__ import annotations

from typing import Any

from domino_py import DynamoTable

from users_schema import email, first_name, login_count, name_index, password, registration_index


def _seed(client: Any, users: DynamoTable) -> None:
    items = [
        {
            "email": "a@b.com" if i % 2 == 0 else "c@d.com",
            "password": f"p{i:02d}",
            "loginCount": i,
            "registrationDate": 1000 + i,
            "firstName": "Ann" if i < 5 else "Bob",
            "lastName": f"L{i:02d}",
        }
        for i in range(10)
    ]
    users.batch_write_item().put_items(*items).execute_with(client)


def test_query_with_range_condition_filter_and_direction(client: Any, users: DynamoTable) -> None:
    _seed(client, users)

    got = (
        users.query(email.equals("a@b.com"), password.between("p02", "p08"))
        .set_filter_expression(login_count.greater_than(2))
        .set_scan_forward(False)
        .execute_with(client, loader=lambda d: d["password"])
    )
    assert got == ["p08", "p06", "p04"]


def test_query_indexes(client: Any, users: DynamoTable) -> None:
    _seed(client, users)

    by_name = users.query(first_name.equals("Ann")).set_global_index(name_index).execute_with(client)
    assert sorted(i["lastName"] for i in by_name) == ["L00", "L01", "L02", "L03", "L04"]

    by_date = (
        users.query(email.equals("c@d.com"), registration_index.sort_key.greater_than_or_eq(1005))
        .set_local_index(registration_index)
        .execute_with(client, loader=lambda d: int(d["registrationDate"]))
    )
    assert by_date == [1005, 1007, 1009]


def test_paging_with_cursor(client: Any, users: DynamoTable) -> None:
    _seed(client, users)

    seen: list[str] = []
    cursor: str | None = ""
    while cursor is not None:
        q = users.query(email.equals("a@b.com")).set_page_size(2)
        if cursor:
            q.set_cursor(cursor)
        page = q.page_with(client, loader=lambda d: d["password"])
        seen.extend(page.items)
        cursor = page.next_cursor
    assert seen == ["p00", "p02", "p04", "p06", "p08"]

    limited = users.query(email.equals("a@b.com")).set_page_size(2).set_limit(3).execute_with(client)
    assert len(limited) == 3


def test_scan_with_filter_and_segments(client: Any, users: DynamoTable) -> None:
    _seed(client, users)

    got = users.scan().set_filter_expression(login_count.in_(1, 3, 5) | first_name.begins_with("Z")).execute_with(
        client
    )
    assert sorted(int(i["loginCount"]) for i in got) == [1, 3, 5]

    total = sum(len(users.scan().set_segment(s, 3).execute_with(client)) for s in range(3))
    assert total == 10
