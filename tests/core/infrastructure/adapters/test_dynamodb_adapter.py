import pytest
from botocore.exceptions import ClientError

from timeline_media.core.infrastructure.adapters.dynamodb_adapter import DynamoDBAdapter
from timeline_media.core.utils.constants import (
    ENV_ACCOUNTS_TABLE_NAME,
    ENV_ATTACHMENTS_TABLE_NAME,
)


class TestDynamoDBAdapter:
    def test_init_missing_table_env(self, monkeypatch):
        monkeypatch.delenv(ENV_ACCOUNTS_TABLE_NAME, raising=False)

        with pytest.raises(RuntimeError):
            DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)

    def test_put_and_get_item_success(self, accounts_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)

        adapter.put_item(item={"account_id": "acct_1", "tier": "personal"})
        response = adapter.get_item(key={"account_id": "acct_1"}, consistent_read=True)

        assert response["Item"] == {"account_id": "acct_1", "tier": "personal"}

    def test_put_item_with_condition_expression(self, accounts_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)
        item = {"account_id": "acct_cond"}

        adapter.put_item(item=item, condition_expression="attribute_not_exists(account_id)")

        with pytest.raises(ClientError) as exc:
            adapter.put_item(item=item, condition_expression="attribute_not_exists(account_id)")

        assert exc.value.response["Error"]["Code"] == "ConditionalCheckFailedException"

    def test_update_item_passes_expressions(self, accounts_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)
        adapter.put_item(item={"account_id": "acct_1", "storage_used_mb": 1})

        adapter.update_item(
            key={"account_id": "acct_1"},
            UpdateExpression="SET storage_used_mb = storage_used_mb + :n",
            ExpressionAttributeValues={":n": 2},
        )

        assert adapter.get_item(key={"account_id": "acct_1"})["Item"]["storage_used_mb"] == 3

    def test_delete_item_success(self, accounts_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)

        adapter.put_item(item={"account_id": "acct_del"})
        adapter.delete_item(key={"account_id": "acct_del"})

        assert "Item" not in adapter.get_item(key={"account_id": "acct_del"})

    def test_query_returns_items(self, attachments_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ATTACHMENTS_TABLE_NAME)
        for attachment_id in ("att_1", "att_2"):
            adapter.put_item(
                item={"attachment_id": attachment_id, "account_id": "acct_1", "entry_id": "entry_1"}
            )

        response = adapter.query(
            IndexName="entry-index",
            KeyConditionExpression="entry_id = :e",
            ExpressionAttributeValues={":e": "entry_1"},
        )

        assert len(response["Items"]) == 2

    def test_get_item_bubbles_client_error(self, monkeypatch, accounts_table):
        adapter = DynamoDBAdapter(table_env_var=ENV_ACCOUNTS_TABLE_NAME)

        def raise_error(**_):
            raise ClientError({"Error": {"Code": "InternalError"}}, "GetItem")

        monkeypatch.setattr(adapter.table, "get_item", raise_error)

        with pytest.raises(ClientError):
            adapter.get_item(key={"account_id": "acct_x"})
