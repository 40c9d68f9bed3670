"""Tests for the owner-scoped file repository."""

import pytest
from django.core.exceptions import ValidationError

from server.apps.files.exceptions import ContentNotLoadedError
from server.apps.files.lazy_content import unit_of_work
from server.apps.files.logic import file_repository
from server.apps.files.logic.file_repository import (
    project_files,
    update_download_time,
    user_files,
)
from server.apps.files.models import ContentBlob, ProjectFile, UserFile
from server.apps.owners.models import UserEntry


@pytest.mark.django_db
def test_save_returns_new_id_and_content_is_readable(
    user_entry,
    other_user_entry,
    mock_s3,
):
    """Test uploaded file can be read back only by its owner."""
    file_id = user_files.save(
        UserFile(
            file_name='report.xml',
            xml_schema='my_schema.xsd',
            content=b'Hello world!',
        ),
        user_entry,
    )

    stored = user_files.file_content_by(file_id, user_entry)

    assert stored.content == b'Hello world!'
    assert stored.size_bytes == 12
    with pytest.raises(UserFile.DoesNotExist):
        user_files.file_content_by(file_id, other_user_entry)


@pytest.mark.django_db
def test_save_stores_required_fields(user_entry, mock_s3, new_user_file):
    """Test saved metadata matches the uploaded file."""
    file_id = user_files.save(new_user_file(b'test_content'), user_entry)

    stored = user_files.file_by_id(file_id)

    assert stored.file_name == 'report.xml'
    assert stored.xml_schema == 'http://example.com/report.xsd'
    assert stored.size_bytes == len(b'test_content')
    assert stored.owner == user_entry
    assert stored.created_at is not None
    assert stored.updated_at is not None


@pytest.mark.django_db
def test_save_ignores_preset_id(user_entry, mock_s3, new_user_file):
    """Test a preset id is replaced by a store assigned one."""
    existing_id = user_files.save(new_user_file(), user_entry)
    file_to_save = new_user_file(b'second')
    file_to_save.id = existing_id

    new_id = user_files.save(file_to_save, user_entry)

    assert new_id != existing_id
    assert user_files.file_content_by(existing_id, user_entry).content == (
        b'<root/>'
    )
    assert UserFile.objects.count() == 2


@pytest.mark.django_db
def test_save_ids_are_not_reused(user_entry, mock_s3, new_user_file):
    """Test ids of deleted files are never assigned again."""
    first_id = user_files.save(new_user_file(), user_entry)
    user_files.remove(user_entry, first_id)

    second_id = user_files.save(new_user_file(), user_entry)

    assert second_id > first_id


@pytest.mark.django_db
def test_save_without_content_stores_empty_file(user_entry, mock_s3):
    """Test content may be empty, such a file is reported as empty."""
    file_id = user_files.save(UserFile(file_name='empty.xml'), user_entry)

    stored = user_files.file_content_by(file_id, user_entry)

    assert stored.content == b''
    assert stored.size_bytes == 0
    assert stored.is_empty()


@pytest.mark.django_db
def test_save_requires_file_name(user_entry, mock_s3, bucket_keys):
    """Test validation fails before anything is uploaded."""
    with pytest.raises(ValidationError) as exc_info:
        user_files.save(UserFile(content=b'data'), user_entry)

    assert 'file_name' in exc_info.value.message_dict
    assert not UserFile.objects.exists()
    assert bucket_keys() == []


@pytest.mark.django_db
def test_save_rejects_too_long_title(project, mock_s3, new_project_file):
    """Test length limits of metadata are enforced."""
    with pytest.raises(ValidationError) as exc_info:
        project_files.save(new_project_file(title='t' * 256), project)

    assert 'title' in exc_info.value.message_dict


@pytest.mark.django_db
def test_save_rejects_too_large_content(
    user_entry,
    mock_s3,
    new_user_file,
    settings,
):
    """Test content size limit from settings."""
    settings.WEBFORMS_MAX_CONTENT_BYTES = 4

    with pytest.raises(ValidationError) as exc_info:
        user_files.save(new_user_file(b'12345'), user_entry)

    assert 'content' in exc_info.value.message_dict


@pytest.mark.django_db
def test_save_rejects_unsaved_owner(mock_s3, new_user_file):
    """Test an owner that is not a stored entry is a malformed key."""
    with pytest.raises(ValidationError) as exc_info:
        user_files.save(new_user_file(), UserEntry(user_id='ghost'))

    assert 'owner' in exc_info.value.message_dict


@pytest.mark.django_db
def test_save_rejects_owner_of_other_kind(project, mock_s3, new_user_file):
    """Test a project cannot own user files."""
    with pytest.raises(ValidationError):
        user_files.save(new_user_file(), project)


@pytest.mark.django_db
def test_save_releases_content_when_record_fails(
    user_entry,
    mock_s3,
    new_user_file,
    bucket_keys,
    monkeypatch,
    django_capture_on_commit_callbacks,
):
    """Test uploaded content is removed if the record cannot be created."""
    def failing_save(*args, **kwargs):
        raise RuntimeError('database is down')

    monkeypatch.setattr(UserFile, 'save', failing_save)

    with django_capture_on_commit_callbacks(execute=True):
        with pytest.raises(RuntimeError):
            user_files.save(new_user_file(), user_entry)

    assert not ContentBlob.objects.exists()
    assert bucket_keys() == []


@pytest.mark.django_db
def test_all_files_for_returns_only_owner_files(
    user_entry,
    other_user_entry,
    mock_s3,
    new_user_file,
):
    """Test listing is scoped to the owner."""
    for _ in range(3):
        user_files.save(new_user_file(), user_entry)
    for _ in range(2):
        user_files.save(new_user_file(), other_user_entry)

    assert len(user_files.all_files_for(user_entry)) == 3
    assert len(user_files.all_files_for(other_user_entry)) == 2


@pytest.mark.django_db
def test_all_files_for_is_ordered_by_creation(
    project,
    mock_s3,
    new_project_file,
):
    """Test listing order is creation order."""
    saved_ids = [
        project_files.save(new_project_file(file_name=f'{index}.xhtml'), project)
        for index in range(3)
    ]

    listed = project_files.all_files_for(project)

    assert [file.id for file in listed] == saved_ids


@pytest.mark.django_db
def test_all_files_for_does_not_load_content(
    user_entry,
    mock_s3,
    new_user_file,
):
    """Test listing leaves content deferred, file_content_by loads it."""
    file_id = user_files.save(new_user_file(b'not empty'), user_entry)

    listed = user_files.all_files_for(user_entry)

    assert not listed[0].content_loaded
    assert listed[0].size_bytes == len(b'not empty')
    assert user_files.file_content_by(file_id, user_entry).content_loaded


@pytest.mark.django_db
def test_content_of_listed_file_fails_after_unit_of_work(
    user_entry,
    mock_s3,
    new_user_file,
):
    """Test deferred content is not reachable once its scope closed."""
    user_files.save(new_user_file(b'test-content'), user_entry)

    only_file = user_files.all_files_for(user_entry)[0]

    with pytest.raises(ContentNotLoadedError) as exc_info:
        only_file.content  # noqa: B018

    assert exc_info.value.file_id == only_file.id


@pytest.mark.django_db
def test_content_of_listed_file_loads_on_demand(
    user_entry,
    mock_s3,
    new_user_file,
):
    """Test deferred content loads inside the caller's unit of work."""
    user_files.save(new_user_file(b'aaaaa'), user_entry)

    with unit_of_work():
        only_file = user_files.all_files_for(user_entry)[0]
        assert only_file.content == b'aaaaa'

    # Loaded content stays available after the scope closed
    assert only_file.content == b'aaaaa'


@pytest.mark.django_db
def test_file_by_id_ignores_owner(user_entry, mock_s3, new_user_file):
    """Test lookup by id only, content deferred."""
    file_id = user_files.save(new_user_file(), user_entry)

    stored = user_files.file_by_id(file_id)

    assert stored.id == file_id
    assert not stored.content_loaded


@pytest.mark.django_db
def test_file_by_id_not_found(db):
    """Test missing id raises DoesNotExist."""
    with pytest.raises(ProjectFile.DoesNotExist):
        project_files.file_by_id(99999)


@pytest.mark.django_db
def test_update_content(user_entry, mock_s3, new_user_file):
    """Test content, size and metadata are replaced together."""
    file_id = user_files.save(new_user_file(b'initial content'), user_entry)
    changed = new_user_file(b'new content', file_name='renamed.xml')
    changed.id = file_id

    updated = user_files.update(changed, user_entry)

    stored = user_files.file_content_by(file_id, user_entry)
    assert updated == 1
    assert stored.content == b'new content'
    assert stored.size_bytes == len(b'new content')
    assert stored.file_name == 'renamed.xml'


@pytest.mark.django_db
def test_update_metadata_only_keeps_content(
    project,
    mock_s3,
    new_project_file,
):
    """Test update without content leaves content and size untouched."""
    file_id = project_files.save(new_project_file(b'<form>C</form>'), project)
    metadata_only = project_files.file_by_id(file_id)
    metadata_only.title = 'Renamed form'
    metadata_only.active = True
    metadata_only.is_main_form = True

    project_files.update(metadata_only, project)

    stored = project_files.file_content_by(file_id, project)
    assert stored.title == 'Renamed form'
    assert stored.active
    assert stored.is_main_form
    assert stored.content == b'<form>C</form>'
    assert stored.size_bytes == len(b'<form>C</form>')


@pytest.mark.django_db
def test_update_metadata_only_keeps_file_name(user_entry, mock_s3):
    """Test file name changes only together with content."""
    file_id = user_files.save(
        UserFile(file_name='original.xml', content=b'x'),
        user_entry,
    )
    metadata_only = UserFile(id=file_id, file_name='ignored.xml', title='T')

    user_files.update(metadata_only, user_entry)

    stored = user_files.file_by_id(file_id)
    assert stored.file_name == 'original.xml'
    assert stored.title == 'T'


@pytest.mark.django_db
def test_update_refreshes_updated_at(user_entry, mock_s3, new_user_file):
    """Test updated_at moves forward, created_at stays."""
    file_id = user_files.save(new_user_file(), user_entry)
    before = user_files.file_by_id(file_id)

    user_files.update(before, user_entry)

    after = user_files.file_by_id(file_id)
    assert after.updated_at >= before.updated_at
    assert after.created_at == before.created_at


@pytest.mark.django_db
def test_update_by_other_owner_changes_nothing(
    user_entry,
    other_user_entry,
    mock_s3,
    new_user_file,
):
    """Test a user cannot change content of another user's file."""
    file_id = user_files.save(new_user_file(b'u1 content'), user_entry)
    change_request = new_user_file(b'u2 content')
    change_request.id = file_id

    updated = user_files.update(change_request, other_user_entry)

    assert updated == 0
    assert user_files.file_content_by(file_id, user_entry).content == (
        b'u1 content'
    )


@pytest.mark.django_db
def test_update_missing_file_leaves_no_content_behind(
    user_entry,
    mock_s3,
    new_user_file,
    bucket_keys,
):
    """Test no-op content update does not upload anything."""
    change_request = new_user_file(b'content')
    change_request.id = 99999

    assert user_files.update(change_request, user_entry) == 0
    assert bucket_keys() == []


@pytest.mark.django_db
def test_update_releases_old_content_on_commit(
    user_entry,
    mock_s3,
    new_user_file,
    bucket_keys,
    django_capture_on_commit_callbacks,
):
    """Test replaced content is removed once the update is committed."""
    file_id = user_files.save(new_user_file(b'old'), user_entry)
    old_blob_id = user_files.file_by_id(file_id).blob_id
    changed = new_user_file(b'new')
    changed.id = file_id

    with django_capture_on_commit_callbacks(execute=True):
        user_files.update(changed, user_entry)

    assert not ContentBlob.objects.filter(pk=old_blob_id).exists()
    assert len(bucket_keys()) == 1


@pytest.mark.django_db
def test_update_content_replaced_during_upload(
    user_entry,
    mock_s3,
    new_user_file,
    bucket_keys,
    monkeypatch,
    django_capture_on_commit_callbacks,
):
    """Test content written by a concurrent update is not left behind.

    While the first update uploads its content, a second update replaces
    the content of the same file. The first update must discard the
    second one's content, not the content it saw before uploading.
    """
    file_id = user_files.save(new_user_file(b'original'), user_entry)
    store_in_repository = file_repository.store_content
    concurrent_updates = []

    def store_with_concurrent_update(data: bytes):
        if not concurrent_updates:
            concurrent = new_user_file(b'concurrent')
            concurrent.id = file_id
            concurrent_updates.append(concurrent)
            user_files.update(concurrent, user_entry)
        return store_in_repository(data)

    monkeypatch.setattr(
        file_repository,
        'store_content',
        store_with_concurrent_update,
    )
    changed = new_user_file(b'final')
    changed.id = file_id

    with django_capture_on_commit_callbacks(execute=True):
        user_files.update(changed, user_entry)

    assert user_files.file_content_by(file_id, user_entry).content == b'final'
    assert ContentBlob.objects.count() == 1
    assert len(bucket_keys()) == 1


@pytest.mark.django_db
def test_remove_single_file(user_entry, mock_s3, new_user_file):
    """Test file removal by id."""
    file_id = user_files.save(new_user_file(), user_entry)

    removed = user_files.remove(user_entry, file_id)

    assert removed == 1
    assert user_files.all_files_for(user_entry) == []


@pytest.mark.django_db
def test_remove_bulk(user_entry, mock_s3, new_user_file):
    """Test several files are removed at once."""
    first_id = user_files.save(new_user_file(), user_entry)
    second_id = user_files.save(new_user_file(), user_entry)

    removed = user_files.remove(user_entry, first_id, second_id)

    assert removed == 2
    assert user_files.all_files_for(user_entry) == []


@pytest.mark.django_db
def test_remove_skips_files_of_other_owner(
    project,
    other_project,
    mock_s3,
    new_project_file,
):
    """Test bulk removal only touches the owner's files."""
    own_id = project_files.save(new_project_file(), project)
    foreign_id = project_files.save(new_project_file(), other_project)

    removed = project_files.remove(project, own_id, foreign_id)

    assert removed == 1
    assert project_files.all_files_for(project) == []
    assert [
        file.id for file in project_files.all_files_for(other_project)
    ] == [foreign_id]


@pytest.mark.django_db
def test_remove_nothing(user_entry):
    """Test removal without ids is a no-op."""
    assert user_files.remove(user_entry) == 0


@pytest.mark.django_db
def test_remove_deletes_content(
    user_entry,
    mock_s3,
    new_user_file,
    bucket_keys,
    django_capture_on_commit_callbacks,
):
    """Test content blob and storage object go with the record."""
    file_id = user_files.save(new_user_file(), user_entry)

    with django_capture_on_commit_callbacks(execute=True):
        user_files.remove(user_entry, file_id)

    assert not ContentBlob.objects.exists()
    assert bucket_keys() == []


@pytest.mark.django_db
def test_update_download_time(user_entry, mock_s3, new_user_file):
    """Test download time is recorded for user files."""
    file_id = user_files.save(new_user_file(), user_entry)
    assert user_files.file_by_id(file_id).downloaded_at is None

    update_download_time(file_id)

    assert user_files.file_by_id(file_id).downloaded_at is not None
