import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('owners', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ContentBlob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('data', models.FileField(help_text='Object name in storage: content/<uuid>', upload_to='')),
                ('size_bytes', models.BigIntegerField(help_text='Content size in bytes')),
                ('checksum_sha256', models.CharField(help_text='SHA256 hash for integrity verification', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Content blob',
                'verbose_name_plural': 'Content blobs',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(size_bytes__gte=0), name='content_blob_size_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProjectFile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(blank=True, default='', max_length=255)),
                ('file_name', models.CharField(max_length=255)),
                ('description', models.CharField(blank=True, default='', max_length=2000)),
                ('xml_schema', models.CharField(blank=True, default='', help_text='URL of the XML Schema the document conforms to', max_length=255)),
                ('user_name', models.CharField(blank=True, default='', help_text='Name of the user who last changed the file', max_length=255)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='Content size in bytes, always equal to the blob size')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('active', models.BooleanField(default=False)),
                ('is_main_form', models.BooleanField(default=False, help_text='Form opened by default for the project schema')),
                ('new_xml_file_name', models.CharField(blank=True, default='', help_text='File name suggested for new instances of the form', max_length=255)),
                ('empty_instance_url', models.CharField(blank=True, default='', help_text='URL of an empty XML instance for the form', max_length=255)),
                ('blob', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='files.contentblob')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to='owners.projectentry')),
            ],
            options={
                'verbose_name': 'Project file',
                'verbose_name_plural': 'Project files',
                'ordering': ['created_at', 'id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['project', 'created_at'], name='project_files_listing_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserFile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(blank=True, default='', max_length=255)),
                ('file_name', models.CharField(max_length=255)),
                ('description', models.CharField(blank=True, default='', max_length=2000)),
                ('xml_schema', models.CharField(blank=True, default='', help_text='URL of the XML Schema the document conforms to', max_length=255)),
                ('user_name', models.CharField(blank=True, default='', help_text='Name of the user who last changed the file', max_length=255)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='Content size in bytes, always equal to the blob size')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('downloaded_at', models.DateTimeField(blank=True, help_text='Last time the file was downloaded', null=True)),
                ('blob', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='files.contentblob')),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to='owners.userentry')),
            ],
            options={
                'verbose_name': 'User file',
                'verbose_name_plural': 'User files',
                'ordering': ['created_at', 'id'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['owner', 'created_at'], name='user_files_listing_idx'),
                ],
            },
        ),
    ]
