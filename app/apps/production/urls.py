from django.urls import path

from . import views

app_name = "production"

urlpatterns = [
    path("sub-batches/<int:sub_batch_id>/dispatch/", views.dispatch_sub_batch, name="dispatch"),
    path("sub-batches/<int:sub_batch_id>/advance/", views.advance_sub_batch, name="advance"),
    path("sub-batches/<int:sub_batch_id>/complete/", views.complete_sub_batch, name="complete"),
    path("sub-batches/<int:sub_batch_id>/flow/", views.sub_batch_flow, name="flow"),
    path("sub-batches/<int:sub_batch_id>/status/", views.sub_batch_status, name="status"),

    path("assignments/<int:assignment_id>/stage/", views.move_assignment_stage, name="move_stage"),
    path("assignments/<int:assignment_id>/work-logs/", views.assignment_work_logs, name="work_logs"),
    path("assignments/<int:assignment_id>/reject/", views.reject_pieces, name="reject"),
    path("assignments/<int:assignment_id>/alter/", views.alter_pieces, name="alter"),
    path("assignments/<int:assignment_id>/advance/", views.advance_assignment, name="advance_branch"),
    path("assignments/<int:assignment_id>/close/", views.close_assignment, name="close_branch"),
    path("assignments/<int:assignment_id>/worker/", views.assign_assignment_worker, name="assign_worker"),
    path("assignments/<int:assignment_id>/split/", views.split_assignment, name="split"),

    path("departments/<int:department_id>/kanban/", views.department_kanban, name="kanban"),
    path("work-logs/<int:work_log_id>/delete/", views.delete_work_log, name="delete_work_log"),
]
