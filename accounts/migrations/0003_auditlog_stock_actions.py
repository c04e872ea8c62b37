from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0002_user_scope"),
    ]

    operations = [
        migrations.AlterField(
            model_name="auditlog",
            name="action",
            field=models.CharField(
                choices=[
                    ("CREATE", "Create"),
                    ("UPDATE", "Update"),
                    ("DELETE", "Delete"),
                    ("APPROVE", "Approve"),
                    ("REJECT", "Reject"),
                    ("CANCEL", "Cancel"),
                    ("UPDATE_STATUS", "Update Status"),
                    ("COMPLETE", "Complete"),
                    ("EXECUTE", "Execute"),
                    ("RECEIVE", "Receive"),
                    ("INBOUND_RECEIPT", "Inbound Receipt"),
                    ("CREATE_USAGE_REPORT", "Create Usage Report"),
                    ("UPDATE_USAGE_REPORT", "Update Usage Report"),
                    ("DELETE_USAGE_REPORT", "Delete Usage Report"),
                    ("STOCK_OPNAME", "Stock Opname"),
                    ("DAMAGE", "Damage"),
                    ("LOSS", "Loss"),
                    ("CORRECTION", "Correction"),
                    ("REPORT_DAMAGE", "Report Damage"),
                    ("UPDATE_MAINTENANCE", "Update Maintenance"),
                ],
                max_length=20,
            ),
        ),
    ]
