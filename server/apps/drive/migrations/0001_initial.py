import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import server.apps.drive.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('description', models.CharField(blank=True, default='', max_length=500)),
                ('kind', models.CharField(choices=[('file', 'File'), ('folder', 'Folder')], max_length=6)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='File size in bytes (always 0 for folders)')),
                ('blob_ref', models.CharField(blank=True, default='', help_text='Opaque reference to the bytes in blob storage', max_length=500)),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('checksum', models.CharField(blank=True, default='', help_text='Caller supplied content hash', max_length=64)),
                ('is_deleted', models.BooleanField(db_index=True, default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('modified_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='drive_items', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='drive.item')),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['kind', 'name'],
                'default_manager_name': 'all_objects',
                'base_manager_name': 'all_objects',
                'indexes': [
                    models.Index(fields=['owner', 'parent', 'is_deleted'], name='drive_owner_parent_idx'),
                    models.Index(fields=['is_deleted', 'deleted_at'], name='drive_trash_age_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_deleted', False)), fields=('owner', 'parent', 'name'), name='drive_active_sibling_name_unique'),
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='drive_size_bytes_non_negative'),
                ],
            },
            managers=[
                ('all_objects', django.db.models.manager.Manager()),
            ],
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='drive_quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('quota_bytes', models.BigIntegerField(default=server.apps.drive.models._default_quota_bytes, help_text='Storage quota limit in bytes')),
                ('used_bytes', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quota_bytes__gte', 0)), name='drive_quota_bytes_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_bytes__gte', 0)), name='drive_used_bytes_non_negative'),
                ],
            },
        ),
    ]
