from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from payments import store


class Command(BaseCommand):
    help = "List orders still awaiting an EPN postback (read only, nothing is changed)"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument(
            "--older-than-minutes",
            type=int,
            default=getattr(settings, "PAYMENTS_PENDING_STALE_MINUTES", 5),
        )

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timedelta(minutes=opts["older_than_minutes"])
        orders = list(store.pending_orders(cutoff, opts["max"]))

        if not orders:
            self.stdout.write(self.style.SUCCESS("No stale pending orders."))
            return

        for o in orders:
            age = int((timezone.now() - o.created_at).total_seconds() // 60)
            self.stdout.write(self.style.WARNING(
                f"{o.order_id} pending {age}m total={o.total_amount} email={o.email}"
            ))
        self.stdout.write(f"{len(orders)} order(s) awaiting postback.")
