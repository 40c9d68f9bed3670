"""Shared fixtures for app tests."""

import boto3
import pytest
from moto import mock_aws

from server.apps.files.models import ProjectFile, UserFile
from server.apps.owners.models import ProjectEntry, UserEntry


@pytest.fixture
def mock_s3(settings):
    """Mock S3 service with the content bucket.

    Yields:
        boto3 S3 resource with the content bucket created.
    """
    bucket_name = settings.STORAGES['default']['OPTIONS']['bucket_name']
    with mock_aws():
        # Create S3 resource
        conn = boto3.resource('s3', region_name='us-east-1')

        # Create bucket
        conn.create_bucket(Bucket=bucket_name)

        yield conn


@pytest.fixture
def bucket_keys(mock_s3, settings):
    """Callable listing object keys currently in the content bucket.

    Returns:
        Function returning a sorted list of keys.
    """
    bucket_name = settings.STORAGES['default']['OPTIONS']['bucket_name']

    def factory() -> list[str]:
        bucket = mock_s3.Bucket(bucket_name)
        return sorted(obj.key for obj in bucket.objects.all())

    return factory


@pytest.fixture
def project(db):
    """Create test project.

    Returns:
        ProjectEntry instance for testing.
    """
    return ProjectEntry.objects.create(
        project_id='proj1',
        description='Test project',
    )


@pytest.fixture
def other_project(db):
    """Create second test project for isolation tests.

    Returns:
        Second ProjectEntry instance.
    """
    return ProjectEntry.objects.create(project_id='proj2')


@pytest.fixture
def user_entry(db):
    """Create test user scope.

    Returns:
        UserEntry instance for testing.
    """
    return UserEntry.objects.create(user_id='u1')


@pytest.fixture
def other_user_entry(db):
    """Create second user scope for isolation tests.

    Returns:
        Second UserEntry instance.
    """
    return UserEntry.objects.create(user_id='u2')


@pytest.fixture
def new_user_file():
    """Factory of unsaved user files.

    Returns:
        Function building a UserFile with content.
    """
    def factory(
        content: bytes | None = b'<root/>',
        file_name: str = 'report.xml',
        xml_schema: str = 'http://example.com/report.xsd',
        **fields: object,
    ) -> UserFile:
        return UserFile(
            file_name=file_name,
            xml_schema=xml_schema,
            content=content,
            **fields,
        )

    return factory


@pytest.fixture
def new_project_file():
    """Factory of unsaved project files.

    Returns:
        Function building a ProjectFile with content.
    """
    def factory(
        content: bytes | None = b'<form/>',
        file_name: str = 'form.xhtml',
        title: str = 'Web form',
        xml_schema: str = 'http://example.com/form.xsd',
        **fields: object,
    ) -> ProjectFile:
        return ProjectFile(
            file_name=file_name,
            title=title,
            xml_schema=xml_schema,
            content=content,
            **fields,
        )

    return factory
