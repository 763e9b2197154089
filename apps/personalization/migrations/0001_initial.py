import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Recommendation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "expires_at",
                    models.DateTimeField(blank=True, db_index=True, null=True),
                ),
                ("student_id", models.CharField(db_index=True, max_length=64)),
                (
                    "recommendation_type",
                    models.CharField(
                        choices=[
                            ("next_lesson", "Next Lesson"),
                            ("review_content", "Review Content"),
                            ("course_recommendation", "Course Recommendation"),
                            ("difficulty_adjustment", "Difficulty Adjustment"),
                            ("study_schedule", "Study Schedule"),
                            ("skill_improvement", "Skill Improvement"),
                            ("break_suggestion", "Break Suggestion"),
                            ("practice_quiz", "Practice Quiz"),
                            ("supplementary_material", "Supplementary Material"),
                        ],
                        max_length=32,
                    ),
                ),
                ("content_id", models.CharField(blank=True, max_length=64, null=True)),
                ("content_type", models.CharField(blank=True, max_length=32, null=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("reason", models.TextField(blank=True, default="")),
                (
                    "confidence_score",
                    models.FloatField(
                        default=0.0,
                        validators=[
                            django.core.validators.MinValueValidator(0.0),
                            django.core.validators.MaxValueValidator(1.0),
                        ],
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        default="medium",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("active", "Active"),
                            ("accepted", "Accepted"),
                            ("dismissed", "Dismissed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("interacted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "interaction_type",
                    models.CharField(blank=True, default="", max_length=32),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(
                        fields=["student_id", "status"],
                        name="personaliz_student_status_idx",
                    ),
                    models.Index(
                        fields=["student_id", "recommendation_type"],
                        name="personaliz_student_type_idx",
                    ),
                ],
            },
        ),
    ]
