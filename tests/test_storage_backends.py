"""Unit tests for storage backends."""
import boto3
import pytest
from moto import mock_aws

from storage.backends import InMemoryStorage, JsonFileStorage
from storage.dynamodb_storage import DynamoDBStorage


@pytest.fixture
def dynamodb_table(monkeypatch):
    """Create a mock DynamoDB table for testing."""
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName='test-hackathon-scout',
            KeySchema=[
                {'AttributeName': 'storage_key', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'storage_key', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture(params=['memory', 'file', 'dynamodb'])
def storage(request, tmp_path):
    """Each storage backend behind the same port."""
    if request.param == 'memory':
        return InMemoryStorage()
    if request.param == 'file':
        return JsonFileStorage(str(tmp_path / 'store'))
    request.getfixturevalue('dynamodb_table')
    return DynamoDBStorage('test-hackathon-scout')


def test_get_missing_key_returns_none(storage):
    assert storage.get('absent') is None


def test_set_then_get(storage):
    storage.set('hackathon_registry_v1', '{"records": []}')

    assert storage.get('hackathon_registry_v1') == '{"records": []}'


def test_set_replaces_value(storage):
    storage.set('key', 'first')
    storage.set('key', 'second')

    assert storage.get('key') == 'second'


def test_remove(storage):
    storage.set('key', 'value')

    storage.remove('key')

    assert storage.get('key') is None


def test_remove_missing_key_is_noop(storage):
    storage.remove('never-set')

    assert storage.get('never-set') is None


def test_file_storage_rejects_path_traversal(tmp_path):
    storage = JsonFileStorage(str(tmp_path))

    with pytest.raises(ValueError):
        storage.set('../escape', 'value')


def test_file_storage_persists_across_instances(tmp_path):
    JsonFileStorage(str(tmp_path)).set('key', 'value')

    assert JsonFileStorage(str(tmp_path)).get('key') == 'value'


def test_dynamodb_storage_writes_item(dynamodb_table):
    storage = DynamoDBStorage('test-hackathon-scout')

    storage.set('hackathon_last_search', '2025-06-01T00:00:00+00:00')

    item = dynamodb_table.get_item(Key={'storage_key': 'hackathon_last_search'})['Item']
    assert item['value'] == '2025-06-01T00:00:00+00:00'
    assert int(item['last_updated']) > 0
