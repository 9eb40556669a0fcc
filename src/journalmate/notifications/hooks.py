"""Event hooks binding domain CRUD events to the notification core.

The web layer calls one hook per entity event. Hooks translate the event into
scheduler calls (schedule on create, cancel-then-reschedule when a time field
changes, cancel on complete/delete) and trigger secondary effects such as
streak updates, milestone celebrations and group fan-out.

Every hook swallows and logs its own errors: a notification problem must
never fail the user's write.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from .extractor import time_field_keys
from .scheduler import SmartNotificationScheduler
from .streaks import StreakService
from .templates import CHANNEL_ACTIVITIES, generate_notification_message

logger = logging.getLogger(__name__)

GOAL_MILESTONES = (50, 75, 100)
PROCESSING_TITLE_LIMIT = 30


def _entity_id(entity: Mapping[str, Any]) -> str:
    return str(entity.get("id"))


def _goal_id(task: Mapping[str, Any]) -> Optional[str]:
    goal_id = task.get("goalId") or task.get("goal_id")
    return str(goal_id) if goal_id else None


def time_fields_changed(updates: Iterable[str]) -> bool:
    """Whether an update payload touches any time-bearing key."""
    return not time_field_keys().isdisjoint(updates)


class NotificationHooks:
    """Entry points for task, activity, goal, group, media and journal events."""

    def __init__(
        self,
        scheduler: SmartNotificationScheduler,
        streaks: Optional[StreakService] = None,
    ):
        self.scheduler = scheduler
        self.streaks = streaks or StreakService(scheduler)
        self._storage = scheduler.storage

    async def _reschedule(
        self, entity: Mapping[str, Any], entity_type: str, user_id: str
    ) -> None:
        entity_id = _entity_id(entity)
        await self.scheduler.cancel_notifications_for_source(entity_type, entity_id)
        await self.scheduler.auto_schedule_notifications(entity, entity_type, entity_id, user_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def on_task_created(self, task: Mapping[str, Any], user_id: str) -> None:
        try:
            await self.scheduler.auto_schedule_notifications(
                task, "task", _entity_id(task), user_id
            )
        except Exception as exc:
            logger.error(f"Error in on_task_created hook: {exc}")

    async def on_task_updated(
        self, task: Mapping[str, Any], updates: Mapping[str, Any], user_id: str
    ) -> None:
        try:
            if time_fields_changed(updates):
                await self._reschedule(task, "task", user_id)
        except Exception as exc:
            logger.error(f"Error in on_task_updated hook: {exc}")

    async def on_task_completed(self, task: Mapping[str, Any], user_id: str) -> None:
        """Cancel the task's reminders, bump the streak and run milestone checks."""
        try:
            await self.scheduler.cancel_notifications_for_source("task", _entity_id(task))
            await self.streaks.update_user_streak(user_id, "task")
            await self.check_activity_completion(task, user_id)
            await self.check_goal_milestone(task, user_id)
        except Exception as exc:
            logger.error(f"Error in on_task_completed hook: {exc}")

    async def on_task_deleted(self, task_id: Any) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source("task", task_id)
        except Exception as exc:
            logger.error(f"Error in on_task_deleted hook: {exc}")

    async def check_activity_completion(
        self, task: Mapping[str, Any], user_id: str
    ) -> int:
        """Celebrate each parent activity whose tasks are now all complete.

        Returns:
            Number of celebration notifications sent
        """
        sent = 0
        try:
            links = await self._storage.get_activity_tasks_for_task(_entity_id(task))
            for link in links:
                activity_id = str(link.get("activityId") or link.get("activity_id"))
                tasks = await self._storage.get_activity_tasks(activity_id, user_id)
                total = len(tasks)
                if total == 0 or any(not t.get("completed") for t in tasks):
                    continue

                activity = await self._storage.get_activity(activity_id, user_id)
                if not activity:
                    continue

                existing = await self._storage.find_pending_smart_notification(
                    user_id, "activity", activity_id, "activity_completion"
                )
                if existing is not None:
                    continue

                message = generate_notification_message(
                    "activity_completion",
                    {"title": activity.get("title"), "task_count": total},
                )
                if message is None:
                    continue

                row = await self.scheduler.send_immediate_notification(
                    user_id,
                    "activity_completion",
                    message.title,
                    message.body,
                    route=f"/app?tab=activities&activity={activity_id}",
                    haptic="celebration",
                    channel=message.channel,
                    source_type="activity",
                    source_id=activity_id,
                )
                if row is not None:
                    sent += 1
        except Exception as exc:
            logger.error(f"Error in check_activity_completion: {exc}")
        return sent

    async def check_goal_milestone(
        self, task: Mapping[str, Any], user_id: str
    ) -> Optional[int]:
        """Celebrate the first 50/75/100% threshold this completion crossed.

        The previous percentage is derived from one fewer completed task, so
        completing several tasks in one operation may skip a threshold.
        Each threshold is sent at most once per goal.

        Returns:
            The milestone notified, or ``None``
        """
        try:
            goal_id = _goal_id(task)
            if goal_id is None:
                return None

            tasks = await self._storage.get_user_tasks(user_id)
            goal_tasks = [t for t in tasks if _goal_id(t) == goal_id]
            total = len(goal_tasks)
            if total < 2:
                return None

            completed = sum(1 for t in goal_tasks if t.get("completed"))
            percentage = round(completed / total * 100)
            previous = round((completed - 1) / total * 100)

            for milestone in GOAL_MILESTONES:
                if not (percentage >= milestone > previous):
                    continue

                notification_type = f"goal_milestone_{milestone}"
                existing = await self._storage.find_pending_smart_notification(
                    user_id, "goal", goal_id, notification_type
                )
                if existing is not None:
                    break

                goals = await self._storage.get_user_goals(user_id)
                goal = next((g for g in goals if _entity_id(g) == goal_id), None)
                if goal is None:
                    break

                template_key = "goal_completed" if milestone == 100 else "goal_milestone"
                message = generate_notification_message(
                    template_key,
                    {
                        "title": goal.get("title"),
                        "percentage": milestone,
                        "completed_count": completed,
                        "total_count": total,
                    },
                )
                if message is None:
                    break

                row = await self.scheduler.send_immediate_notification(
                    user_id,
                    notification_type,
                    message.title,
                    message.body,
                    route=f"/app?tab=goals&goal={goal_id}",
                    haptic="celebration" if milestone == 100 else "medium",
                    channel=message.channel,
                    source_type="goal",
                    source_id=goal_id,
                )
                return milestone if row is not None else None
        except Exception as exc:
            logger.error(f"Error in check_goal_milestone: {exc}")
        return None

    # ------------------------------------------------------------------
    # Activities and timeline items
    # ------------------------------------------------------------------

    async def on_activity_created(self, activity: Mapping[str, Any], user_id: str) -> None:
        try:
            await self.scheduler.auto_schedule_notifications(
                activity, "activity", _entity_id(activity), user_id
            )
        except Exception as exc:
            logger.error(f"Error in on_activity_created hook: {exc}")

    async def on_activity_updated(
        self, activity: Mapping[str, Any], updates: Mapping[str, Any], user_id: str
    ) -> None:
        try:
            if time_fields_changed(updates):
                await self._reschedule(activity, "activity", user_id)
        except Exception as exc:
            logger.error(f"Error in on_activity_updated hook: {exc}")

    async def on_activity_deleted(self, activity_id: Any) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source("activity", activity_id)
        except Exception as exc:
            logger.error(f"Error in on_activity_deleted hook: {exc}")

    async def on_activity_task_created(
        self, task: Mapping[str, Any], activity_id: Any, user_id: str
    ) -> None:
        try:
            if task.get("scheduledAt") or task.get("scheduled_at"):
                await self.scheduler.auto_schedule_notifications(
                    task, "activityTask", _entity_id(task), user_id
                )
        except Exception as exc:
            logger.error(f"Error in on_activity_task_created hook: {exc}")

    async def on_activity_task_updated(
        self, task: Mapping[str, Any], updates: Mapping[str, Any], user_id: str
    ) -> None:
        try:
            if time_fields_changed(updates):
                await self._reschedule(task, "activityTask", user_id)
        except Exception as exc:
            logger.error(f"Error in on_activity_task_updated hook: {exc}")

    async def on_activity_task_completed(self, task: Mapping[str, Any], user_id: str) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source(
                "activityTask", _entity_id(task)
            )
        except Exception as exc:
            logger.error(f"Error in on_activity_task_completed hook: {exc}")

    async def on_activity_task_deleted(self, task_id: Any) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source("activityTask", task_id)
        except Exception as exc:
            logger.error(f"Error in on_activity_task_deleted hook: {exc}")

    async def on_activity_processing_complete(
        self,
        activity: Mapping[str, Any],
        user_id: str,
        task_count: int = 0,
        source: Optional[str] = None,
    ) -> None:
        """Tell the user an imported plan is ready; copy depends on the import source."""
        try:
            raw_title = str(activity.get("title") or "")
            short_title = (
                raw_title[:PROCESSING_TITLE_LIMIT] + "..."
                if len(raw_title) > PROCESSING_TITLE_LIMIT
                else raw_title
            )

            if source == "url":
                title = f"✨ {short_title}"
                body = (
                    f"We turned your link into {task_count} actionable steps. Ready when you are!"
                    if task_count > 0
                    else "Your link has been transformed into an action plan. Take a look!"
                )
            elif source == "paste":
                title = f"📋 {short_title}"
                body = (
                    f"{task_count} steps created from your content. Let's make it happen!"
                    if task_count > 0
                    else "Your content is now an organized plan. Check it out!"
                )
            else:
                title = f"🎯 {short_title}"
                body = (
                    f"Your plan with {task_count} steps is ready. Time to take action!"
                    if task_count > 0
                    else "Your activity plan is ready. Let's get started!"
                )

            activity_id = _entity_id(activity)
            await self.scheduler.send_immediate_notification(
                user_id,
                "activity_ready",
                title,
                body,
                route=f"/app?tab=activities&activity={activity_id}",
                haptic="celebration",
                channel=CHANNEL_ACTIVITIES,
                source_type="activity",
                source_id=activity_id,
            )
        except Exception as exc:
            logger.error(f"Error in on_activity_processing_complete: {exc}")

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    async def on_goal_created(self, goal: Mapping[str, Any], user_id: str) -> None:
        try:
            if goal.get("deadline"):
                await self.scheduler.auto_schedule_notifications(
                    goal, "goal", _entity_id(goal), user_id
                )
        except Exception as exc:
            logger.error(f"Error in on_goal_created hook: {exc}")

    async def on_goal_updated(
        self, goal: Mapping[str, Any], updates: Mapping[str, Any], user_id: str
    ) -> None:
        try:
            if time_fields_changed(updates):
                await self._reschedule(goal, "goal", user_id)
        except Exception as exc:
            logger.error(f"Error in on_goal_updated hook: {exc}")

    async def on_goal_completed(self, goal: Mapping[str, Any], user_id: str) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source("goal", _entity_id(goal))
        except Exception as exc:
            logger.error(f"Error in on_goal_completed hook: {exc}")

    async def on_goal_deleted(self, goal_id: Any) -> None:
        try:
            await self.scheduler.cancel_notifications_for_source("goal", goal_id)
        except Exception as exc:
            logger.error(f"Error in on_goal_deleted hook: {exc}")

    # ------------------------------------------------------------------
    # Calendar, media and journal
    # ------------------------------------------------------------------

    async def on_calendar_event_synced(self, event: Mapping[str, Any], user_id: str) -> None:
        try:
            if event.get("startDate") or event.get("start_date"):
                await self._reschedule(event, "calendarEvent", user_id)
        except Exception as exc:
            logger.error(f"Error in on_calendar_event_synced hook: {exc}")

    async def on_media_added(self, media: Mapping[str, Any], user_id: str) -> None:
        try:
            if media.get("releaseDate") or media.get("release_date"):
                await self.scheduler.auto_schedule_notifications(
                    media, "media", _entity_id(media), user_id
                )
        except Exception as exc:
            logger.error(f"Error in on_media_added hook: {exc}")

    async def on_journal_entry_created(self, entry: Mapping[str, Any], user_id: str) -> None:
        try:
            await self.streaks.update_user_streak(user_id, "journal")
        except Exception as exc:
            logger.error(f"Error in on_journal_entry_created hook: {exc}")

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def _notify_members(
        self,
        group_id: str,
        exclude_user_id: str,
        notification_type: str,
        context: Mapping[str, Any],
        route: str,
        haptic: str,
    ) -> int:
        message = generate_notification_message(notification_type, context)
        if message is None:
            return 0

        members = await self._storage.get_group_members(group_id)
        sent = 0
        for member in members:
            member_id = str(member.get("userId") or member.get("user_id"))
            if member_id == str(exclude_user_id):
                continue
            row = await self.scheduler.send_immediate_notification(
                member_id,
                notification_type,
                message.title,
                message.body,
                route=route,
                haptic=haptic,
                channel=message.channel,
                source_type="group",
                source_id=group_id,
            )
            if row is not None:
                sent += 1
        return sent

    async def on_group_invite_sent(self, invite: Mapping[str, Any], inviter_id: str) -> None:
        try:
            inviter = await self._storage.get_user(inviter_id)
            group_id = str(invite.get("groupId") or invite.get("group_id"))
            group = await self._storage.get_group(group_id)
            invitee_id = invite.get("inviteeId") or invite.get("invitee_id")
            if inviter is None or group is None or not invitee_id:
                return

            message = generate_notification_message(
                "group_invite_received",
                {"inviter_name": inviter.friendly_name, "group_name": group.get("name")},
            )
            if message is None:
                return

            await self.scheduler.send_immediate_notification(
                str(invitee_id),
                "group_invite_received",
                message.title,
                message.body,
                route=f"/app?tab=groups&invite={invite.get('id')}",
                haptic="heavy",
                channel=message.channel,
                actions=[
                    {"id": "accept", "title": "Accept", "action": "accept_invite"},
                    {"id": "decline", "title": "Decline", "action": "decline_invite"},
                ],
                source_type="group",
                source_id=group_id,
            )
        except Exception as exc:
            logger.error(f"Error in on_group_invite_sent hook: {exc}")

    async def on_group_member_joined(
        self, membership: Mapping[str, Any], new_member_user_id: str
    ) -> None:
        try:
            user = await self._storage.get_user(new_member_user_id)
            group_id = str(membership.get("groupId") or membership.get("group_id"))
            group = await self._storage.get_group(group_id)
            if user is None or group is None:
                return

            await self._notify_members(
                group_id,
                new_member_user_id,
                "group_invite_accepted",
                {"user_name": user.friendly_name, "group_name": group.get("name")},
                route=f"/app?tab=groups&group={group_id}",
                haptic="medium",
            )
        except Exception as exc:
            logger.error(f"Error in on_group_member_joined hook: {exc}")

    async def on_group_member_left(self, group_id: Any, leaving_user_id: str) -> None:
        try:
            user = await self._storage.get_user(leaving_user_id)
            group = await self._storage.get_group(str(group_id))
            if user is None or group is None:
                return

            await self._notify_members(
                str(group_id),
                leaving_user_id,
                "group_member_left",
                {"user_name": user.friendly_name, "group_name": group.get("name")},
                route=f"/app?tab=groups&group={group_id}",
                haptic="light",
            )
        except Exception as exc:
            logger.error(f"Error in on_group_member_left hook: {exc}")

    async def on_activity_shared_to_group(
        self, activity: Mapping[str, Any], group_id: Any, sharer_id: str
    ) -> None:
        try:
            sharer = await self._storage.get_user(sharer_id)
            group = await self._storage.get_group(str(group_id))
            if sharer is None or group is None:
                return

            await self._notify_members(
                str(group_id),
                sharer_id,
                "group_activity_shared",
                {
                    "sharer_name": sharer.friendly_name,
                    "activity_title": activity.get("title"),
                    "group_name": group.get("name"),
                },
                route=f"/app?tab=groups&group={group_id}&activity={_entity_id(activity)}",
                haptic="medium",
            )
        except Exception as exc:
            logger.error(f"Error in on_activity_shared_to_group hook: {exc}")

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def reprocess_user_notifications(self, user_id: str) -> int:
        """Cancel a user's pending rows and reschedule open entities.

        Used after a timezone or preference change.

        Returns:
            Number of rows scheduled
        """
        scheduled: List[Any] = []
        try:
            await self._storage.cancel_all_pending_notifications_for_user(user_id)

            for task in await self._storage.get_tasks_with_due_dates(user_id):
                if not task.get("completed"):
                    scheduled += await self.scheduler.auto_schedule_notifications(
                        task, "task", _entity_id(task), user_id
                    )

            for activity in await self._storage.get_activities_with_dates(user_id):
                scheduled += await self.scheduler.auto_schedule_notifications(
                    activity, "activity", _entity_id(activity), user_id
                )

            for goal in await self._storage.get_goals_with_deadlines(user_id):
                if not goal.get("completed"):
                    scheduled += await self.scheduler.auto_schedule_notifications(
                        goal, "goal", _entity_id(goal), user_id
                    )
        except Exception as exc:
            logger.error(f"Error reprocessing notifications for user {user_id}: {exc}")

        logger.info(f"Reprocessed notifications for user {user_id} ({len(scheduled)} scheduled)")
        return len(scheduled)
