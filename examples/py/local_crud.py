from __future__ import annotations

import os
import uuid

import boto3

from domino_py import DynamoTable, KeyValue, NumericField, StringField

pk = StringField("pk")
sk = StringField("sk")
amount = NumericField("amount")


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def main() -> None:
    client = _client()
    notes = DynamoTable(name=f"domino_py_example_{uuid.uuid4().hex[:12]}", partition_key=pk, range_key=sk)
    notes.create_table().execute_with(client)

    try:
        notes.put_item({"pk": "A", "sk": "001", "amount": 1}).execute_with(client)
        notes.put_item({"pk": "A", "sk": "010", "amount": 10}).execute_with(client)
        notes.put_item({"pk": "A", "sk": "100", "amount": 100}).execute_with(client)

        print("get:", notes.get_item(KeyValue("A", "010")).execute_with(client))

        updated = (
            notes.update_item(KeyValue("A", "010"))
            .set_update_expression(amount.increment(5))
            .set_condition_expression(amount.equals(10))
            .return_updated_new()
            .execute_with(client)
        )
        print("update:", updated)

        q = notes.query(pk.equals("A"), sk.begins_with("0")).set_filter_expression(amount.greater_than(1))
        print("request:", q.build())
        print("query begins_with('0'):", q.execute_with(client))
    finally:
        notes.delete_table().execute_with(client, wait_for_delete=False)


if __name__ == "__main__":
    main()
