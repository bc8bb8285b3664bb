from chart_repo.main import main

raise SystemExit(main())
