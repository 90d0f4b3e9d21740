from garden_monitor.cli import main

raise SystemExit(main())
