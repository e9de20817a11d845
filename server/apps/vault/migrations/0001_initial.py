import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('is_favorite', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='vault.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='folders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'parent'], name='folders_user_parent_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', False)), fields=('user', 'name', 'parent'), name='folders_user_sibling_name_unique'),
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', True)), fields=('user', 'name'), name='folders_user_root_name_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('note', 'Note'), ('image', 'Image'), ('pdf', 'PDF')], max_length=10)),
                ('title', models.CharField(max_length=200)),
                ('content', models.TextField(blank=True, default='')),
                ('blob', models.FileField(blank=True, help_text='Path in storage: {user_id}/{kind}/file.ext', upload_to='')),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('checksum_sha256', models.CharField(blank=True, default='', max_length=64)),
                ('size_bytes', models.BigIntegerField(help_text='Bytes charged against the owner quota')),
                ('is_favorite', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_accessed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('folder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.RESTRICT, related_name='items', to='vault.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'folder'], name='items_user_folder_idx'),
                    models.Index(fields=['user', 'kind'], name='items_user_kind_idx'),
                    models.Index(fields=['user', '-last_accessed_at'], name='items_user_recent_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='items_size_bytes_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('quota_bytes', models.BigIntegerField(default=16106127360, help_text='Storage quota limit in bytes')),
                ('used_bytes', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quota_bytes__gte', 0)), name='quota_bytes_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_bytes__gte', 0)), name='used_bytes_non_negative'),
                ],
            },
        ),
    ]
