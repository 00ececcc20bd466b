from task_scheduler.cli import main

main()
