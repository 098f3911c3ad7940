from apptbook.main import main

raise SystemExit(main())
