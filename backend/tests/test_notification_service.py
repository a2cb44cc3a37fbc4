from shopcore.services import activity_service, notification_service


class TestNotifications:

    def _emit(self, shop, title, user_id=None):
        return notification_service.create_notification(
            shop_id=shop.id, type="sale", title=title, message=title, user_id=user_id,
        )

    def test_list_newest_first_with_unread_count(self, db_session, shop_a):
        first = self._emit(shop_a, "first")
        second = self._emit(shop_a, "second")

        items, unread = notification_service.list_notifications(shop_a.id)

        assert [n.id for n in items] == [second.id, first.id]
        assert unread == 2

    def test_user_filter_keeps_shop_wide(self, db_session, shop_a):
        self._emit(shop_a, "for 1", user_id=1)
        self._emit(shop_a, "for 2", user_id=2)
        self._emit(shop_a, "everyone")

        items, _ = notification_service.list_notifications(shop_a.id, user_id=1)

        assert sorted(n.title for n in items) == ["everyone", "for 1"]

    def test_mark_read(self, db_session, shop_a, shop_b):
        first = self._emit(shop_a, "first")
        self._emit(shop_a, "second")
        self._emit(shop_b, "elsewhere")

        assert notification_service.mark_notifications_read(shop_a.id, [first.id]) == 1
        items, unread = notification_service.list_notifications(shop_a.id, unread_only=True)
        assert [n.title for n in items] == ["second"]
        assert unread == 1

        assert notification_service.mark_notifications_read(shop_a.id) == 1
        _, unread_b = notification_service.list_notifications(shop_b.id)
        assert unread_b == 1


class TestActivityLog:

    def test_append_and_list(self, db_session, shop_a, shop_b):
        activity_service.append_activity(
            shop_id=shop_a.id, action="record_sale", entity_type="sale", entity_id=1, staff_id=5,
        )
        activity_service.append_activity(
            shop_id=shop_a.id, action="purchase_order.sent", entity_type="purchase_order", entity_id=2,
        )
        activity_service.append_activity(
            shop_id=shop_b.id, action="record_sale", entity_type="sale", entity_id=3,
        )
        db_session.commit()

        entries = activity_service.list_activity(shop_a.id)
        assert [e.action for e in entries] == ["purchase_order.sent", "record_sale"]

        sales_only = activity_service.list_activity(shop_a.id, entity_type="sale")
        assert [e.entity_id for e in sales_only] == [1]
